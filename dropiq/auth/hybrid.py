import logging
from typing import Any, Dict

from sqlalchemy import func, select

from dropiq.auth.passwords import hash_password, verify_password
from dropiq.auth.tokens import ACCESS_TOKEN, TWO_FACTOR_PENDING, sign_token
from dropiq.auth.two_factor import TwoFactorAuthService
from dropiq.auth.wallet import (
    create_sign_in_message,
    generate_nonce,
    message_carries_nonce,
    verify_signature,
)
from dropiq.errors import BadRequest, Conflict, NotFound, Unauthorized
from dropiq.models import User, Wallet
from dropiq.models.base import utcnow
from dropiq.serializers import user_to_dict

logger = logging.getLogger(__name__)


def auth_user_payload(session, user: User, auth_method: str) -> Dict[str, Any]:
    wallets = session.execute(select(Wallet).where(Wallet.user_id == user.id)).scalars().all()
    data = user_to_dict(user)
    data["authMethod"] = auth_method
    data["wallets"] = [{"address": w.address, "isPrimary": bool(w.is_primary)} for w in wallets]
    return data


class HybridAuthService:
    """Email/password and wallet-signature sign-in sharing one user table."""

    def __init__(self, two_factor: TwoFactorAuthService):
        self.two_factor = two_factor

    def _token_for(self, user: User, auth_method: str, **claims) -> str:
        payload = {"userId": user.id, "role": user.role, "isGuest": bool(user.is_guest), "authMethod": auth_method}
        payload.update(claims)
        return sign_token(payload, ACCESS_TOKEN)

    def _result(self, session, user: User, auth_method: str, is_new_user: bool = False, **claims):
        if self.two_factor.requires_two_factor(user):
            temp = dict(claims, userId=user.id, authMethod=auth_method)
            return {
                "requiresTwoFactor": True,
                "tempToken": sign_token(temp, TWO_FACTOR_PENDING),
                "message": "Please enter your 2FA code",
            }
        return {
            "token": self._token_for(user, auth_method, **claims),
            "user": auth_user_payload(session, user, auth_method),
            "isNewUser": is_new_user,
            "message": "Guest account created. Link an email account to save your progress." if is_new_user else "Welcome back!",
        }

    def complete_two_factor(self, session, user: User, temp_payload: Dict[str, Any]):
        auth_method = temp_payload.get("authMethod", "email")
        claims = {k: temp_payload[k] for k in ("address", "email") if temp_payload.get(k)}
        return {
            "token": self._token_for(user, auth_method, **claims),
            "user": auth_user_payload(session, user, auth_method),
            "message": "Authentication successful!",
        }

    # Email

    def register_with_email(self, session, email: str, password: str, name=None):
        existing = session.execute(select(User).where(func.lower(User.email) == email.lower())).scalar_one_or_none()
        if existing:
            raise Conflict("User with this email already exists")
        user = User(email=email.lower(), password_hash=hash_password(password), name=name, role="user", is_guest=False)
        session.add(user)
        session.commit()
        logger.info("Registered user %s", user.id)
        return {
            "token": self._token_for(user, "email", email=user.email),
            "user": auth_user_payload(session, user, "email"),
            "message": "Account created successfully!",
        }

    def authenticate_with_email(self, session, email: str, password: str):
        user = session.execute(select(User).where(func.lower(User.email) == email.lower())).scalar_one_or_none()
        if not user or not user.password_hash or not verify_password(password, user.password_hash):
            raise Unauthorized("Invalid email or password")
        user.last_active = utcnow()
        session.commit()
        return self._result(session, user, "email", email=user.email)

    # Wallet

    def issue_nonce(self, session, address: str):
        wallet = session.execute(select(Wallet).where(Wallet.address == address)).scalar_one_or_none()
        nonce = generate_nonce()
        if wallet is None:
            wallet = Wallet(address=address, nonce=nonce)
            session.add(wallet)
        else:
            wallet.nonce = nonce
        session.commit()
        return {"nonce": nonce, "message": create_sign_in_message(nonce)}

    def _verified_wallet(self, session, address: str, signature: str, message: str) -> Wallet:
        wallet = session.execute(select(Wallet).where(Wallet.address == address)).scalar_one_or_none()
        if wallet is None:
            raise Unauthorized("Wallet not found. Please request a nonce first.")
        if not message_carries_nonce(message, wallet.nonce):
            raise Unauthorized("Sign-in message does not match the current nonce")
        if not verify_signature(message, signature, address):
            raise Unauthorized("Invalid signature")
        return wallet

    def authenticate_with_wallet(self, session, address: str, signature: str, message: str):
        wallet = self._verified_wallet(session, address, signature, message)
        is_new_user = False
        user = session.get(User, wallet.user_id) if wallet.user_id else None
        if user is None:
            user = User(is_guest=True, role="user")
            session.add(user)
            session.flush()
            wallet.user_id = user.id
            wallet.is_primary = True
            is_new_user = True
            logger.info("Created guest user %s for wallet %s", user.id, address)
        wallet.last_used_at = utcnow()
        wallet.nonce = generate_nonce()
        user.last_active = utcnow()
        session.commit()
        return self._result(session, user, "wallet", is_new_user=is_new_user, address=address)

    def link_wallet_to_account(self, session, user: User, address: str, signature: str, message: str):
        wallet = session.execute(select(Wallet).where(Wallet.address == address)).scalar_one_or_none()
        if wallet is None:
            raise NotFound("Wallet not found. Please connect your wallet first.")
        if not message_carries_nonce(message, wallet.nonce) or not verify_signature(message, signature, address):
            raise Unauthorized("Invalid signature")
        if wallet.user_id and wallet.user_id != user.id:
            previous = session.get(User, wallet.user_id)
            if not (previous and previous.is_guest):
                raise Conflict("This wallet is already linked to another account")
        elif wallet.user_id == user.id:
            raise Conflict("This wallet is already linked to your account")
        else:
            previous = None

        has_primary = session.execute(
            select(func.count(Wallet.id)).where(Wallet.user_id == user.id, Wallet.is_primary.is_(True))
        ).scalar_one()
        wallet.user_id = user.id
        # one primary wallet per user
        wallet.is_primary = not has_primary
        wallet.last_used_at = utcnow()
        wallet.nonce = generate_nonce()
        user.is_guest = False
        session.flush()

        if previous is not None:
            remaining = session.execute(select(func.count(Wallet.id)).where(Wallet.user_id == previous.id)).scalar_one()
            if remaining == 0:
                logger.info("Removing guest user %s after wallet link", previous.id)
                session.delete(previous)
        session.commit()
        return {"address": wallet.address, "linkedAt": wallet.last_used_at.isoformat()}

    def link_email_to_account(self, session, user: User, email: str, password: str):
        if user.email:
            raise Conflict("An email is already linked to this account")
        taken = session.execute(select(User).where(func.lower(User.email) == email.lower())).scalar_one_or_none()
        if taken:
            raise Conflict("Email is already in use")
        user.email = email.lower()
        user.password_hash = hash_password(password)
        user.is_guest = False
        session.commit()
        return auth_user_payload(session, user, "email")

    def change_password(self, session, user: User, current_password: str, new_password: str):
        if not user.password_hash:
            raise BadRequest("User not found or no password set")
        if not verify_password(current_password, user.password_hash):
            raise Unauthorized("Current password is incorrect")
        user.password_hash = hash_password(new_password)
        session.commit()

    def unlink_wallet(self, session, user: User, address: str):
        wallet = session.execute(
            select(Wallet).where(Wallet.address == address, Wallet.user_id == user.id)
        ).scalar_one_or_none()
        if wallet is None:
            raise NotFound("Wallet not found or not linked to your account")
        count = session.execute(select(func.count(Wallet.id)).where(Wallet.user_id == user.id)).scalar_one()
        if count <= 1 and not user.email:
            raise BadRequest("Cannot remove the only wallet linked to your account")
        wallet.user_id = None
        wallet.is_primary = False
        session.commit()
