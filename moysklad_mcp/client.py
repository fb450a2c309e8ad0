import logging
import time
from typing import Any, Dict, Optional

import requests

from moysklad_mcp.config import MoySkladConfig, get_auth_header, get_config
from moysklad_mcp.errors import MoySkladError, parse_api_error_response

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_DELAY = 1.0  # seconds, multiplied by the attempt number
MAX_RETRY_AFTER = 60.0  # seconds

ENDPOINTS = {
    # entities
    "product": "entity/product",
    "variant": "entity/variant",
    "counterparty": "entity/counterparty",
    "customerorder": "entity/customerorder",
    "demand": "entity/demand",
    "supply": "entity/supply",
    "move": "entity/move",
    "organization": "entity/organization",
    "store": "entity/store",
    # reports
    "stockAll": "report/stock/all",
    "stockByStore": "report/stock/bystore",
    "profitByProduct": "report/profit/byproduct",
    "dashboard": "report/dashboard",
}


def _retry_after_seconds(response: requests.Response, attempt: int) -> float:
    retry_after = response.headers.get("Retry-After")
    if retry_after:
        try:
            seconds = int(retry_after)
        except ValueError:
            seconds = -1
        if seconds >= 0:
            return float(min(seconds, MAX_RETRY_AFTER))
    return RETRY_DELAY * (attempt + 1)


class MoySkladClient:
    def __init__(self, config: Optional[MoySkladConfig] = None, session: Optional[requests.Session] = None):
        self.config = config or get_config()
        self.auth_header = get_auth_header(self.config)
        self.session = session or requests.Session()

    @property
    def base_url(self) -> str:
        return self.config.base_url

    def entity_href(self, entity: str, entity_id: str) -> str:
        return f"{self.base_url}/entity/{entity}/{entity_id}"

    def request(
        self,
        endpoint: str,
        method: str = "GET",
        body: Any = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Any:
        """
        Sends a request to the MoySklad API and returns the decoded JSON body.

        Rate-limited responses (429) are retried after the Retry-After delay, network
        failures after a linear backoff. Error responses from the API are raised at once.

        Args:
            endpoint: Path relative to the API root, e.g. 'entity/product'.
            method: HTTP method.
            body: JSON-serialisable payload for POST/PUT.
            params: Query string parameters.

        Raises:
            MoySkladError: the API rejected the request, or every attempt failed.
        """
        url = f"{self.base_url}/{endpoint}"
        headers = {
            "Authorization": self.auth_header,
            "Content-Type": "application/json",
            "Accept": "application/json;charset=utf-8",
        }
        last_error: Optional[Exception] = None

        for attempt in range(MAX_RETRIES):
            try:
                response = self.session.request(
                    method,
                    url,
                    headers=headers,
                    params=params or None,
                    json=body,
                    timeout=self.config.timeout,
                )

                if response.status_code == 429:
                    delay = _retry_after_seconds(response, attempt)
                    logger.warning("Rate limited on %s %s, retrying in %.1fs", method, endpoint, delay)
                    time.sleep(delay)
                    continue

                data = response.json()

                if not response.ok:
                    raise parse_api_error_response(data)

                return data
            except requests.RequestException as e:
                last_error = e
                logger.warning(
                    "Request %s %s failed (attempt %d/%d): %s", method, endpoint, attempt + 1, MAX_RETRIES, e
                )
                if attempt < MAX_RETRIES - 1:
                    time.sleep(RETRY_DELAY * (attempt + 1))

        raise MoySkladError(str(last_error) if last_error else "Request failed after several attempts")

    def get_list(self, endpoint: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        return self.request(endpoint, params=params)

    def get_one(self, endpoint: str, entity_id: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        return self.request(f"{endpoint}/{entity_id}", params=params)

    def create(self, endpoint: str, data: Any) -> Dict[str, Any]:
        return self.request(endpoint, method="POST", body=data)

    def update(self, endpoint: str, entity_id: str, data: Any) -> Dict[str, Any]:
        return self.request(f"{endpoint}/{entity_id}", method="PUT", body=data)


_client: Optional[MoySkladClient] = None


def get_client() -> MoySkladClient:
    global _client
    if _client is None:
        _client = MoySkladClient()
    return _client


def reset_client() -> None:
    global _client
    _client = None
