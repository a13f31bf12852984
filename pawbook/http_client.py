"""HTTP session factory for the POS API.

Purpose: Centralize connection pooling and auth headers.

Pattern: requests.Session with a pooled HTTPAdapter. Retries are NOT done
by urllib3 here; the gateway's tenacity loop owns retry timing so that
Retry-After and jitter are applied in one place.
"""
from typing import Optional

import requests
from requests.adapters import HTTPAdapter

DEFAULT_TIMEOUT_SECONDS = 15


def create_http_session(
    api_token: Optional[str] = None,
    pool_size: int = 10
) -> requests.Session:
    """
    Create HTTP session with connection pooling.

    Args:
        api_token: Bearer token sent on every request (omitted when empty)
        pool_size: Connections kept per host

    Returns:
        Configured requests.Session
    """
    session = requests.Session()

    adapter = HTTPAdapter(
        max_retries=0,
        pool_connections=pool_size,
        pool_maxsize=pool_size,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    session.headers.update({
        "Accept": "application/json",
        "Content-Type": "application/json",
    })
    if api_token:
        session.headers["Authorization"] = f"Bearer {api_token}"

    return session
