"""Signed session tokens for admin and driver principals (PyJWT, HS256)."""
import logging
from datetime import datetime, timedelta, timezone
import jwt
from shared.enums import PrincipalType

logger = logging.getLogger(__name__)

ALGORITHM = 'HS256'
ADMIN_TOKEN_TTL = timedelta(hours=8)
DRIVER_TOKEN_TTL = timedelta(hours=4)


class TokenError(Exception):
    """Raised when a token is missing, malformed, expired, or badly signed."""
    pass


def _encode(claims, secret, ttl):
    issued = datetime.now(timezone.utc)
    payload = dict(claims, iat=issued, exp=issued + ttl)
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def create_admin_token(secret):
    return _encode({'type': PrincipalType.ADMIN.value}, secret, ADMIN_TOKEN_TTL)


def create_driver_token(secret, driver_id, email):
    return _encode(
        {'type': PrincipalType.DRIVER.value, 'driverId': driver_id, 'email': email},
        secret,
        DRIVER_TOKEN_TTL,
    )


def decode_token(token, secret):
    """Verify signature and expiry and return the claims.

    Role checks are left to the caller so that a wrong-role token can be
    told apart from an invalid one.

    Raises:
        TokenError: If the token is expired or invalid
    """
    try:
        return jwt.decode(token, secret, algorithms=[ALGORITHM], options={'require': ['exp']})
    except jwt.ExpiredSignatureError:
        logger.info("Rejected expired token")
        raise TokenError('Token expired')
    except jwt.InvalidTokenError as e:
        logger.info(f"Rejected invalid token: {e}")
        raise TokenError('Invalid token')


def extract_bearer_token(header_value):
    """Return the token from an 'Authorization: Bearer <token>' header, or None."""
    if header_value and header_value.startswith('Bearer '):
        token = header_value[7:].strip()
        return token or None
    return None
