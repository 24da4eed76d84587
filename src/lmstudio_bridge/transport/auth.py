"""
API key resolution utilities.

Resolves the endpoint credential from:
1. Explicit value
2. Environment variable (``LM_STUDIO_API_KEY`` by default)
"""

from __future__ import annotations

import os

DEFAULT_API_KEY_ENV = "LM_STUDIO_API_KEY"


def resolve_api_key(
    explicit_key: str | None = None,
    env_var: str = DEFAULT_API_KEY_ENV,
) -> str | None:
    """Resolve the API key.

    Args:
        explicit_key: Explicitly provided API key
        env_var: Environment variable consulted when no key is given

    Returns:
        Resolved API key or None if not found
    """
    if explicit_key:
        return explicit_key

    key = os.getenv(env_var)
    if key:
        return key

    return None


def get_auth_header(
    api_key: str | None = None,
    env_var: str = DEFAULT_API_KEY_ENV,
) -> dict[str, str]:
    """Get the bearer authentication header.

    Args:
        api_key: Optional explicit API key
        env_var: Environment variable consulted when no key is given

    Returns:
        Dictionary with the Authorization header, empty when no key resolves
    """
    key = resolve_api_key(api_key, env_var)
    if not key:
        return {}
    return {"Authorization": f"Bearer {key}"}
