import os
import logging
from typing import Mapping, Optional

import requests

logger = logging.getLogger(__name__)

CSRF_COOKIE = "csrftoken"
JWT_PATH = "/api/v1/auth/jwt-token"


def admin_credentials() -> dict[str, str]:
    """Read the payout account credentials from the environment.

    Raises
    ------
    RuntimeError
        If ``WALLET_ADMIN_USERNAME`` or ``WALLET_ADMIN_PASSWORD`` is unset.
    """
    missing = [
        name
        for name in ("WALLET_ADMIN_USERNAME", "WALLET_ADMIN_PASSWORD")
        if not os.environ.get(name)
    ]
    if missing:
        raise RuntimeError(f"Wallet credentials not configured: {', '.join(missing)}")
    return {
        "username": os.environ["WALLET_ADMIN_USERNAME"],
        "password": os.environ["WALLET_ADMIN_PASSWORD"],
    }


def open_session(base_url: str, timeout: int = 45) -> tuple[requests.Session, str]:
    """Open a session against ``base_url`` and pick up its CSRF cookie.

    Parameters
    ----------
    base_url : str
        Scheme and host of the wallet service, e.g. ``"https://wallet.example"``.
    timeout : int
        Seconds to wait for the landing page.

    Returns
    -------
    tuple[requests.Session, str]
        The live session and the CSRF token to echo in ``X-CSRFTOKEN``.

    Raises
    ------
    RuntimeError
        If the service cannot be reached or sets no CSRF cookie.
    """
    session = requests.Session()
    try:
        response = session.get(base_url, timeout=timeout)
        response.raise_for_status()
        csrf_token = response.cookies.get(CSRF_COOKIE)
    except requests.RequestException as e:
        logger.critical(f"Could not reach wallet service at {base_url}: {e}")
        raise RuntimeError(f"Failed to establish wallet session: {e}") from e

    if not csrf_token:
        logger.critical(f"Wallet service at {base_url} set no {CSRF_COOKIE} cookie")
        raise RuntimeError("Failed to establish wallet session: no CSRF token")
    logger.debug(f"Wallet session opened for {base_url}")
    return session, csrf_token


def get_jwt_token(
    session: requests.Session,
    base_url: str,
    credentials: Optional[Mapping[str, str]] = None,
    timeout: int = 45,
) -> str:
    """Log the payout account in and return its JWT access token.

    ``credentials`` defaults to :func:`admin_credentials`.

    Raises
    ------
    requests.HTTPError
        If the login request is refused.
    KeyError
        If the response carries no ``"access"`` field.
    """
    payload = dict(credentials) if credentials is not None else admin_credentials()
    response = session.post(base_url + JWT_PATH, json=payload, timeout=timeout)
    response.raise_for_status()
    return response.json()["access"]
