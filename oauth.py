import logging
from typing import Optional

from google.auth import exceptions as google_exceptions
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

from config import GOOGLE_CLIENT_ID
from errors import UnknownError

logger = logging.getLogger("ledger-api")


def verify_google_id_token(token: str) -> Optional[dict]:
    """Return the verified claims of a Google ID token, or None if it is invalid or unverified.

    Raises UnknownError when Google's signing keys cannot be fetched.
    """
    if not GOOGLE_CLIENT_ID:
        logger.warning("GOOGLE_CLIENT_ID is not set, rejecting Google sign-in")
        return None

    try:
        claims = id_token.verify_oauth2_token(
            token, google_requests.Request(), GOOGLE_CLIENT_ID
        )
    except google_exceptions.TransportError as exc:
        logger.error("Could not reach Google to verify an ID token: %s", exc)
        raise UnknownError("Could not verify the Google token right now")
    except ValueError as exc:
        logger.info("Google ID token rejected: %s", exc)
        return None

    if not claims.get("email"):
        return None
    if claims.get("email_verified") not in (True, "true"):
        logger.info("Google ID token rejected: email address is not verified")
        return None
    return claims


def get_identity_verifier():
    return verify_google_id_token
