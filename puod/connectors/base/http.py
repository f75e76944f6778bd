"""Shared ``requests`` plumbing for REST connectors.

Sessions get connection pooling plus a ``urllib3`` retry strategy for
idempotent methods, and one of the supported authentication modes:

* ``auth_type=profile``: OAuth2 client-credentials token (``client_id``,
  ``client_secret``, ``scopes`` and ``token_url`` or ``tenant_id``)
* ``cookie_header``: raw ``Cookie`` header copied from a browser session
* ``username`` + ``password``: HTTP basic
* ``token``: bearer token
"""

from typing import Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from requests.auth import HTTPBasicAuth
from urllib3.util.retry import Retry

from puod.config import HttpSettings
from puod.connectors.base.exceptions import (
    InvalidConfigurationError,
    RemoteRequestError,
)
from puod.logging import get_logger

logger = get_logger(__name__)

CONNECTION_POOL_SIZE = 10
USER_AGENT = "PUOD-Integration-Connector/1.0"
MICROSOFT_TOKEN_URL = "https://login.microsoftonline.com/{tenant_id}/oauth2/v2.0/token"


def has_credentials(config: Dict[str, str]) -> bool:
    """True when ``config`` carries any supported authentication mode."""
    if config.get("auth_type") == "profile":
        return True
    if (config.get("cookie_header") or "").strip():
        return True
    if config.get("username") and config.get("password") is not None:
        return True
    return bool(config.get("token"))


def validate_profile_auth(config: Dict[str, str], connector_name: str) -> None:
    """Eager checks for ``auth_type=profile``."""
    if config.get("auth_type") != "profile":
        return
    for key in ("client_id", "client_secret", "scopes"):
        if not (config.get(key) or "").strip():
            raise InvalidConfigurationError(
                f"missing required config for profile auth: {key}", connector_name
            )
    if not config.get("tenant_id") and not config.get("token_url"):
        raise InvalidConfigurationError(
            "missing required config for profile auth: tenant_id or token_url",
            connector_name,
        )


def create_session(
    config: Dict[str, str],
    settings: Optional[HttpSettings] = None,
    connector_name: str = "http",
) -> requests.Session:
    """Create a pooled, retrying session authenticated from ``config``."""
    settings = settings or HttpSettings()
    session = requests.Session()
    session.headers.update({"Accept": "application/json", "User-Agent": USER_AGENT})

    retry_strategy = Retry(
        total=settings.max_retries,
        backoff_factor=settings.backoff_factor,
        status_forcelist=[429, 502, 503, 504],
        allowed_methods=["HEAD", "GET", "OPTIONS"],
    )
    adapter = HTTPAdapter(
        pool_connections=CONNECTION_POOL_SIZE,
        pool_maxsize=CONNECTION_POOL_SIZE,
        max_retries=retry_strategy,
        pool_block=False,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    if config.get("auth_type") == "profile":
        token = fetch_client_credentials_token(config, settings.timeout, connector_name)
        session.headers["Authorization"] = f"Bearer {token}"
    elif (config.get("cookie_header") or "").strip():
        session.headers["Cookie"] = config["cookie_header"].strip()
    elif config.get("username") and config.get("password") is not None:
        session.auth = HTTPBasicAuth(config["username"], config["password"])
    elif config.get("token"):
        session.headers["Authorization"] = f"Bearer {config['token']}"

    return session


def fetch_client_credentials_token(
    config: Dict[str, str], timeout: float, connector_name: str = "http"
) -> str:
    """Exchange client credentials for an access token."""
    token_url = (config.get("token_url") or "").strip() or MICROSOFT_TOKEN_URL.format(
        tenant_id=config.get("tenant_id", "")
    )
    response = requests.post(
        token_url,
        data={
            "grant_type": "client_credentials",
            "client_id": config["client_id"],
            "client_secret": config["client_secret"],
            "scope": config["scopes"],
        },
        timeout=timeout,
    )
    if response.status_code >= 400:
        raise RemoteRequestError(
            f"Failed to obtain access token: {response.status_code} {truncate(response.text)}",
            connector_name,
            status_code=response.status_code,
        )

    token = response.json().get("access_token")
    if not token:
        raise RemoteRequestError(
            "Token endpoint response has no access_token", connector_name
        )
    return token


def truncate(text: Optional[str], max_length: int = 500) -> str:
    if not text:
        return ""
    return text if len(text) <= max_length else text[:max_length] + "..."
