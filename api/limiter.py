"""
api/limiter.py -- Shared Flask-Limiter instance.

create_app() binds it with init_app(); auth routes apply per-route limits
with @limiter.limit(). One shared instance means every route counts against
the same store. Storage and on/off switch come from RATELIMIT_* config keys.
"""

from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)
