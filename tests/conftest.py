"""
Shared fixtures: a clean MoySklad environment, a mocked API client for tool tests,
and canned HTTP responses for client tests.
"""

from unittest.mock import MagicMock

import pytest

from moysklad_mcp import client as client_module

ENV_VARS = (
    "MOYSKLAD_TOKEN",
    "MOY_SKLAD_API_KEY",
    "MOYSKLAD_LOGIN",
    "MOYSKLAD_PASSWORD",
    "MOYSKLAD_BASE_URL",
    "MOYSKLAD_TIMEOUT",
)

BASE_URL = "https://api.moysklad.ru/api/remap/1.2"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    client_module.reset_client()
    yield
    client_module.reset_client()


@pytest.fixture
def mock_client(monkeypatch):
    """Replaces the API client singleton used by the tools."""
    mock = MagicMock()
    mock.base_url = BASE_URL
    mock.entity_href.side_effect = lambda entity, entity_id: f"{BASE_URL}/entity/{entity}/{entity_id}"
    monkeypatch.setattr("moysklad_mcp.server.get_client", lambda: mock)
    return mock


def make_response(status=200, json_data=None, headers=None, json_error=None):
    response = MagicMock()
    response.status_code = status
    response.ok = status < 400
    response.headers = headers or {}
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = json_data
    return response


def list_response(rows, size=None, limit=25, offset=0):
    return {
        "meta": {"size": len(rows) if size is None else size, "limit": limit, "offset": offset},
        "rows": rows,
    }
