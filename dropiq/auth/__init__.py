from .decorators import optional_auth, require_auth, require_role
from .hybrid import HybridAuthService
from .two_factor import TwoFactorAuthService

__all__ = ["optional_auth", "require_auth", "require_role", "HybridAuthService", "TwoFactorAuthService"]
