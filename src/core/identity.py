"""User identity derived from the backend-issued bearer token."""
import logging
from dataclasses import dataclass

import jwt

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """
    The active user, passed explicitly to every cache-layer call.

    A service only touches the namespace of the identity it was handed.
    """

    user_id: str
    token: str


def extract_user_id_from_token(token: str | None) -> str | None:
    """
    Read the user ID embedded in a JWT without verifying its signature.

    The client only reads the payload; authenticity is checked by the server on every
    request. Anything malformed degrades to None rather than raising.

    Args:
        token: Compact JWT (header.payload.signature) issued at login.

    Returns:
        The 'id' claim as a string, or None if the token cannot be decoded or has no id.
    """
    if not token or not isinstance(token, str):
        return None
    try:
        payload = jwt.decode(
            token,
            options={"verify_signature": False},
            algorithms=["HS256", "HS384", "HS512", "RS256"],
        )
    except jwt.PyJWTError as e:
        logger.debug("token_decode_failed error=%s", e)
        return None

    user_id = payload.get("id")
    if user_id is None or user_id == "" or isinstance(user_id, (dict, list, bool)):
        return None
    return str(user_id)
