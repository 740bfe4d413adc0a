import logging
import secrets

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import is_address, to_checksum_address

logger = logging.getLogger(__name__)

SIGN_IN_TEMPLATE = "Sign this message to authenticate with DROPIQ.\n\nNonce: {nonce}\n\nThis does not cost any gas fees."


def generate_nonce() -> str:
    return secrets.token_hex(16)


def create_sign_in_message(nonce: str) -> str:
    return SIGN_IN_TEMPLATE.format(nonce=nonce)


def is_valid_address(address) -> bool:
    return isinstance(address, str) and is_address(address)


def normalize_address(address: str) -> str:
    return to_checksum_address(address)


def verify_signature(message: str, signature: str, address: str) -> bool:
    """True when `signature` over `message` (EIP-191 personal_sign) recovers `address`."""
    try:
        recovered = Account.recover_message(encode_defunct(text=message), signature=signature)
    except Exception as exc:
        # malformed signatures raise a variety of eth_keys / binascii errors
        logger.info("Signature recovery failed: %s", exc)
        return False
    return recovered.lower() == address.lower()


def message_carries_nonce(message: str, nonce: str) -> bool:
    return bool(nonce) and f"Nonce: {nonce}" in message
