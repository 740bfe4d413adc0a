from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

# Storage and on/off switch come from RATELIMIT_* app config at init_app time.
limiter = Limiter(key_func=get_remote_address, default_limits=[])

SIGN_IN_LIMIT = "5 per 15 minutes"
TWO_FACTOR_LIMIT = "3 per 15 minutes"
