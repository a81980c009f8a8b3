from .auth import CtiAuthError, CtiTokens, TokenManager
from .client import CtiApiClient, CtiApiError, create_http_client
from .extension_registry import ExtensionRegistry
from .presence_poller import PresencePoller, poll_interval_for
from .stream_client import SseLineDecoder, StreamClient

__all__ = [
    "CtiApiClient",
    "CtiApiError",
    "CtiAuthError",
    "CtiTokens",
    "ExtensionRegistry",
    "PresencePoller",
    "SseLineDecoder",
    "StreamClient",
    "TokenManager",
    "create_http_client",
    "poll_interval_for",
]
