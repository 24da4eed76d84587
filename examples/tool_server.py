#!/usr/bin/env python3
"""
Tool server example.

Registers a summarize tool backed by the resilient client, calls it twice
(the second call is served from the cache), streams a short answer and
waits for SIGINT/SIGTERM to drain and shut down.

Usage:
    export LM_STUDIO_URL="http://localhost:1234"
    export LM_STUDIO_MODEL="qwen2.5-7b-instruct"
    python examples/tool_server.py
"""

import asyncio
from contextlib import aclosing

from lmstudio_bridge import (
    BridgeConfig,
    ExecuteOptions,
    ResilientClient,
    Tool,
    ToolServer,
)


async def summarize(arguments, client, cache_key):
    """Summarize text in at most ``max_words`` words."""
    max_words = int(arguments.get("max_words", 100))
    prompt = (
        f"Summarize the following text in at most {max_words} words.\n\n"
        f"{arguments['content']}"
    )
    return await client.execute(
        prompt,
        ExecuteOptions(temperature=0.2, max_tokens=max_words * 2, cache_key=cache_key),
    )


async def main() -> None:
    """Run the tool server example."""
    config = BridgeConfig.from_env()
    config.configure_logging()

    client = ResilientClient.from_config(config)
    await client.start()

    server = ToolServer(client, config)
    server.register(Tool("summarize", "Summarize text", summarize))
    server.install_signal_handlers(asyncio.get_running_loop())

    text = "Python is a programming language that lets you work quickly and integrate systems."
    for _ in range(2):
        result = await server.call_tool("summarize", {"content": text, "max_words": 20})
        print(result.text)

    # Close the stream explicitly so its admission slot is released at once.
    async with aclosing(client.stream("Name three Python web frameworks.")) as chunks:
        async for chunk in chunks:
            print(chunk, end="", flush=True)
            if "\n" in chunk:
                break
    print()

    print(f"Health: {client.health().to_dict()}")
    print(f"Metrics: {client.metrics().to_dict()}")
    print("Press Ctrl+C to shut down")

    await server.wait_stopped()


if __name__ == "__main__":
    asyncio.run(main())
