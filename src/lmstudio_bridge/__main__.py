"""Command-line entry point.

Usage::

    python -m lmstudio_bridge healthcheck [--base-url URL] [--timeout SECONDS]

Exits 0 when the endpoint answers the model listing, 1 otherwise, so the
command can back container and service health checks.
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from lmstudio_bridge.config import BridgeConfig
from lmstudio_bridge.errors import BridgeError
from lmstudio_bridge.transport import HttpTransport


async def check_health(base_url: str, api_key: str, timeout: float) -> bool:
    """Probe the model listing once and report the result on stdout/stderr."""
    transport = HttpTransport(base_url, api_key=api_key, timeout=timeout)
    try:
        models = await transport.list_models()
    except BridgeError as e:
        print(f"LM Studio is not healthy: {e.message}", file=sys.stderr)
        return False
    finally:
        await transport.close()

    print("LM Studio is healthy")
    print(f"  Models available: {len(models)}")
    return True


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lmstudio_bridge")
    commands = parser.add_subparsers(dest="command", required=True)

    health = commands.add_parser("healthcheck", help="Probe the endpoint once")
    health.add_argument("--base-url", help="Server URL (defaults to LM_STUDIO_URL)")
    health.add_argument("--timeout", type=float, default=5.0, help="Probe timeout in seconds")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = BridgeConfig.from_env()
    except BridgeError as e:
        print(e.message, file=sys.stderr)
        return 1
    config.configure_logging()

    base_url = args.base_url or config.lm_studio.base_url
    healthy = asyncio.run(check_health(base_url, config.lm_studio.api_key, args.timeout))
    return 0 if healthy else 1


if __name__ == "__main__":
    sys.exit(main())
