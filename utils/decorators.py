from __future__ import annotations
from functools import wraps
from flask import request, g, abort, current_app

from services.tokens import InvalidTokenError
from utils.permissions import has_capability


def jwt_required():
    """
    Require a valid Bearer access token. The token is verified by signature
    and expiry only; no database lookup happens here.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            auth = request.headers.get("Authorization", "")
            if not auth.startswith("Bearer "):
                abort(401, description="Missing or invalid Authorization header")
            token = auth.split(" ", 1)[1].strip()
            issuer = current_app.extensions["auth"].issuer
            try:
                claims = issuer.verify_access_token(token)
            except InvalidTokenError as e:
                abort(401, description=str(e))

            g.current_user_id = claims["sub"]
            g.current_user_role = claims.get("role")
            g.current_token_claims = claims
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def capability_required(capability: str):
    """
    Allow access only if the caller's role grants `capability`.
    """
    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            if not has_capability(g.current_user_role, capability):
                abort(403, description="Insufficient permissions")
            return fn(*args, **kwargs)

        return wrapper

    return decorator
