import logging
import re
import secrets
from typing import Optional

logger = logging.getLogger(__name__)

_BEARER_PATTERN = re.compile(r"Bearer\s+(.+)", re.IGNORECASE)


def read_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """
    Extracts the token from an "Authorization: Bearer <token>" header value.

    The "Bearer" prefix is matched case-insensitively and the token is
    whitespace-trimmed. Returns None when the header is missing, malformed,
    or carries an empty token.
    """
    match = _BEARER_PATTERN.fullmatch(str(authorization or ""))
    if not match:
        return None
    token = match.group(1).strip()
    return token or None


def safe_equal(candidate: str, secret: str) -> bool:
    """Constant-time string comparison. Only the length check may short-circuit."""
    candidate_bytes = candidate.encode("utf-8")
    secret_bytes = secret.encode("utf-8")
    if len(candidate_bytes) != len(secret_bytes):
        return False
    return secrets.compare_digest(candidate_bytes, secret_bytes)


def verify_bearer_token(authorization: Optional[str], api_token: str) -> bool:
    """
    Validates an inbound Authorization header against the configured secret.

    The caller must check that a secret is configured before calling this;
    an empty secret is rejected here rather than matched against an empty token.
    """
    if not api_token:
        return False
    token = read_bearer_token(authorization)
    if token is None:
        logger.debug("Missing or malformed Authorization Bearer header.")
        return False
    if not safe_equal(token, api_token):
        logger.debug("Bearer token did not match the configured secret.")
        return False
    return True
