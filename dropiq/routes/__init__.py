from .admin import admin_bp
from .airdrops import airdrops_bp
from .auth import auth_bp
from .automation import automation_bp
from .campaigns import campaigns_bp
from .payments import payments_bp
from .preferences import preferences_bp
from .security import security_bp
from .strategies import strategies_bp
from .users import users_bp
from .wallet import wallet_bp

BLUEPRINTS = (
    auth_bp,
    airdrops_bp,
    campaigns_bp,
    payments_bp,
    security_bp,
    admin_bp,
    wallet_bp,
    strategies_bp,
    automation_bp,
    preferences_bp,
    users_bp,
)

__all__ = [
    "BLUEPRINTS",
    "admin_bp",
    "airdrops_bp",
    "auth_bp",
    "automation_bp",
    "campaigns_bp",
    "payments_bp",
    "preferences_bp",
    "security_bp",
    "strategies_bp",
    "users_bp",
    "wallet_bp",
]
