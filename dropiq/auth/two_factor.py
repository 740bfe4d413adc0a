import logging
import secrets
from typing import List, Optional

import pyotp

from dropiq.auth.passwords import verify_password
from dropiq.errors import BadRequest, Conflict, Unauthorized
from dropiq.models import User

logger = logging.getLogger(__name__)

ISSUER_NAME = "DROPIQ"
BACKUP_CODE_COUNT = 10


def generate_backup_codes(count: int = BACKUP_CODE_COUNT) -> List[str]:
    return [secrets.token_hex(4).upper() for _ in range(count)]


class TwoFactorAuthService:
    """TOTP second factor with single-use backup codes."""

    def __init__(self, issuer_name: str = ISSUER_NAME):
        self.issuer_name = issuer_name

    def requires_two_factor(self, user: Optional[User]) -> bool:
        return bool(user and user.two_factor_enabled)

    def setup(self, session, user: User):
        if user.two_factor_enabled:
            raise Conflict("2FA is already enabled")
        secret = pyotp.random_base32()
        backup_codes = generate_backup_codes()
        account_name = user.email or (user.wallets[0].address if user.wallets else f"user-{user.id}")
        uri = pyotp.TOTP(secret).provisioning_uri(name=account_name, issuer_name=self.issuer_name)
        user.two_factor_secret = secret
        user.two_factor_backup_codes = backup_codes
        session.commit()
        return {"secret": secret, "otpauthUrl": uri, "backupCodes": backup_codes}

    def enable(self, session, user: User, code: str):
        if not user.two_factor_secret:
            raise BadRequest("2FA setup not found")
        if not pyotp.TOTP(user.two_factor_secret).verify(code, valid_window=1):
            raise BadRequest("Invalid verification code")
        user.two_factor_enabled = True
        session.commit()
        logger.info("2FA enabled for user %s", user.id)
        return {"enabled": True, "backupCodes": list(user.two_factor_backup_codes or [])}

    def verify_login(self, session, user: User, code: Optional[str] = None, backup_code: Optional[str] = None):
        if not user.two_factor_enabled or not user.two_factor_secret:
            raise Unauthorized("2FA not enabled for this user")
        if backup_code:
            codes = list(user.two_factor_backup_codes or [])
            normalized = backup_code.strip().upper()
            if normalized not in codes:
                raise Unauthorized("Invalid backup code")
            codes.remove(normalized)
            # reassign so the JSON column is flagged dirty
            user.two_factor_backup_codes = codes
            session.commit()
            logger.info("Backup code used for user %s (%d remaining)", user.id, len(codes))
            return {"usedBackupCode": True, "remainingBackupCodes": len(codes)}
        if not pyotp.TOTP(user.two_factor_secret).verify(code or "", valid_window=1):
            raise Unauthorized("Invalid verification code")
        return {"usedBackupCode": False}

    def disable(self, session, user: User, password: str):
        if user.password_hash and not verify_password(password, user.password_hash):
            raise Unauthorized("Invalid password")
        user.two_factor_enabled = False
        user.two_factor_secret = None
        user.two_factor_backup_codes = None
        session.commit()
        logger.info("2FA disabled for user %s", user.id)

    def regenerate_backup_codes(self, session, user: User) -> List[str]:
        if not user.two_factor_enabled:
            raise BadRequest("2FA not enabled")
        codes = generate_backup_codes()
        user.two_factor_backup_codes = codes
        session.commit()
        return codes
