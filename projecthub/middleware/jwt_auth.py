"""
JWT principal resolver: Authorization header -> ``g.principal``.

Tokens are issued by the external auth service (HS256, shared secret).
Claims used:
    sub    principal id
    role   "provider" | "client"
    email  client email (matched against project memberships)

Missing, expired or malformed tokens leave ``g.principal`` as None; the
blueprints answer 401 for routes that need a principal.
"""

import logging

import jwt as pyjwt
from flask import current_app, g, request

from projecthub.core.principal import PRINCIPAL_ROLES, Principal

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

# Paths that never carry a principal
JWT_SKIP_PREFIXES = (
    "/api/v1/health",
)


def _get_secret() -> str:
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def decode_principal(token: str) -> Principal | None:
    """Decode ``token`` into a Principal, or None if the claims are unusable.

    Raises:
        jwt.InvalidTokenError: bad signature, expired, malformed.
    """
    payload = pyjwt.decode(token, _get_secret(), algorithms=[ALGORITHM])
    sub = payload.get("sub")
    role = payload.get("role")
    if not sub or role not in PRINCIPAL_ROLES:
        return None
    return Principal(id=str(sub), role=role, email=payload.get("email"))


def init_jwt_middleware(app):
    """Register the resolver as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.principal = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        if path.startswith(JWT_SKIP_PREFIXES):
            return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        try:
            g.principal = decode_principal(auth_header[7:])
        except pyjwt.ExpiredSignatureError:
            logger.info("Expired token on %s %s", request.method, path)
        except pyjwt.InvalidTokenError:
            logger.warning("Invalid token on %s %s", request.method, path)
