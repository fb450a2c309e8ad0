import asyncio
import sys
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import mcp_client


def test_server_config_forwards_credentials(monkeypatch):
    monkeypatch.setenv("MOYSKLAD_TOKEN", "secret")
    monkeypatch.setenv("MOY_SKLAD_API_KEY", "legacy")
    monkeypatch.setenv("OPENAI_API_KEY", "not-forwarded")

    config = mcp_client.build_server_config()["moysklad"]

    assert config["command"] == sys.executable
    assert config["args"] == ["-m", "moysklad_mcp.server"]
    assert config["transport"] == "stdio"
    assert config["env"]["MOYSKLAD_TOKEN"] == "secret"
    assert config["env"]["MOY_SKLAD_API_KEY"] == "legacy"
    assert "OPENAI_API_KEY" not in config["env"]


def test_server_config_keeps_default_environment(monkeypatch):
    monkeypatch.setenv("PATH", "/usr/local/bin:/usr/bin")
    monkeypatch.setenv("MOYSKLAD_TOKEN", "secret")

    env = mcp_client.build_server_config()["moysklad"]["env"]

    assert env["PATH"] == "/usr/local/bin:/usr/bin"
    assert env["MOYSKLAD_TOKEN"] == "secret"


def test_run_query_returns_final_answer():
    tools = [MagicMock(name="moysklad_get_stock")]
    mcp_instance = MagicMock()
    mcp_instance.get_tools = AsyncMock(return_value=tools)
    agent = MagicMock()
    agent.ainvoke = AsyncMock(return_value={"messages": [SimpleNamespace(content="thinking"), SimpleNamespace(content="42 units")]})
    model = object()

    with patch.object(mcp_client, "MultiServerMCPClient", return_value=mcp_instance) as client_cls, \
            patch.object(mcp_client, "create_react_agent", return_value=agent) as create_agent:
        answer = asyncio.run(mcp_client.run_query("How much stock?", model=model))

    assert answer == "42 units"
    assert "moysklad" in client_cls.call_args.args[0]
    create_agent.assert_called_once_with(model, tools)
    agent.ainvoke.assert_awaited_once_with({"messages": [("user", "How much stock?")]})
