import base64
import os
from typing import Optional

from pydantic import BaseModel

from moysklad_mcp.errors import ConfigError

DEFAULT_BASE_URL = "https://api.moysklad.ru/api/remap/1.2"
DEFAULT_TIMEOUT = 30.0  # seconds


class MoySkladConfig(BaseModel):
    token: Optional[str] = None
    login: Optional[str] = None
    password: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT


def get_config() -> MoySkladConfig:
    """
    Reads MoySklad credentials from the environment.

    MOYSKLAD_TOKEN (or the older MOY_SKLAD_API_KEY) takes precedence;
    otherwise both MOYSKLAD_LOGIN and MOYSKLAD_PASSWORD are required.
    MOYSKLAD_BASE_URL overrides the API root, MOYSKLAD_TIMEOUT the per-request timeout in seconds.

    Raises:
        ConfigError: if no usable credentials are set.
    """
    token = os.getenv("MOYSKLAD_TOKEN") or os.getenv("MOY_SKLAD_API_KEY")
    login = os.getenv("MOYSKLAD_LOGIN")
    password = os.getenv("MOYSKLAD_PASSWORD")

    if not token and not (login and password):
        raise ConfigError(
            "MOYSKLAD_TOKEN (or MOY_SKLAD_API_KEY) or MOYSKLAD_LOGIN + MOYSKLAD_PASSWORD must be set"
        )

    base_url = os.getenv("MOYSKLAD_BASE_URL") or DEFAULT_BASE_URL
    try:
        timeout = float(os.getenv("MOYSKLAD_TIMEOUT") or DEFAULT_TIMEOUT)
    except ValueError:
        raise ConfigError(f"MOYSKLAD_TIMEOUT must be a number of seconds, got {os.getenv('MOYSKLAD_TIMEOUT')!r}")
    return MoySkladConfig(
        token=token or None,
        login=login,
        password=password,
        base_url=base_url.rstrip("/"),
        timeout=timeout,
    )


def get_auth_header(config: MoySkladConfig) -> str:
    if config.token:
        return f"Bearer {config.token}"
    credentials = base64.b64encode(f"{config.login}:{config.password}".encode("utf-8")).decode("ascii")
    return f"Basic {credentials}"
