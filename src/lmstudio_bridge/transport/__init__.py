"""
Transport layer - HTTP client for the completion endpoint.

Provides httpx-based transport with:
- Chat completion and model listing
- Server-sent-event streaming
- Timeout management
- API key resolution
"""

from lmstudio_bridge.transport.auth import get_auth_header, resolve_api_key
from lmstudio_bridge.transport.http import HttpTransport, api_base_url

__all__ = [
    "HttpTransport",
    "api_base_url",
    "get_auth_header",
    "resolve_api_key",
]
