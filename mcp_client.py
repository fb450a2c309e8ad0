import asyncio
import os
import sys

from dotenv import load_dotenv
from langchain_core.globals import set_debug
from langchain_mcp_adapters.client import MultiServerMCPClient
from langchain_openai import ChatOpenAI
from langgraph.prebuilt import create_react_agent
from mcp.client.stdio import get_default_environment

load_dotenv()

FORWARDED_ENV_PREFIXES = ("MOYSKLAD_", "MOY_SKLAD_")


def build_server_config() -> dict:
    # stdio servers only inherit a default safe set of variables (PATH, HOME, ...), add the credentials to it
    env = get_default_environment()
    env.update({k: v for k, v in os.environ.items() if k.startswith(FORWARDED_ENV_PREFIXES)})
    return {
        "moysklad": {
            "command": sys.executable,
            "args": ["-m", "moysklad_mcp.server"],
            "transport": "stdio",
            "env": env,
        }
    }


async def run_query(user_query: str, model=None, debug: bool = False) -> str:
    print(f"▶ User Query: {user_query}")

    if model is None:
        model = ChatOpenAI(model=os.getenv("OPENAI_MODEL", "gpt-4o"), temperature=0)

    client = MultiServerMCPClient(build_server_config())
    agent_executor = create_react_agent(model, await client.get_tools())

    set_debug(debug)

    print("\nAgent is thinking...")
    try:
        result = await agent_executor.ainvoke({"messages": [("user", user_query)]})
    finally:
        set_debug(False)

    final_answer = result["messages"][-1].content
    print("\nFinal Answer:")
    print(final_answer)
    return final_answer


if __name__ == "__main__":
    query = " ".join(sys.argv[1:]) or "How many units of each product are available in stock right now?"

    asyncio.run(run_query(query, debug=True))
