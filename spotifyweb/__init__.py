"""Spotify Web API client: OAuth2 grant flows plus an authenticated dispatcher.

Supported flows:
- Authorization Code + PKCE (public clients, no secret)
- Authorization Code with client secret (server-side clients)
- Client Credentials (app-only)
"""

from .api import SpotifyWebApi
from .auth import (
    ClientIdentity,
    FlowState,
    GrantFlowKind,
    SpotifyClientCredentialsAuth,
    SpotifyCodeAuth,
    SpotifyPKCEAuth,
    build_grant_flow,
)
from .client import Dispatcher, SpotifyClient
from .errors import (
    AuthError,
    CSRFInvalid,
    Forbidden,
    HTTPErr,
    RateLimited,
    ReAuthNeeded,
    SpotifyWebError,
)
from .token_manager import (
    JSONFileStorage,
    MemoryStorage,
    PendingAuthorization,
    TokenInfo,
    TokenManager,
)

__all__ = [
    "SpotifyWebApi",
    "ClientIdentity",
    "FlowState",
    "GrantFlowKind",
    "SpotifyClientCredentialsAuth",
    "SpotifyCodeAuth",
    "SpotifyPKCEAuth",
    "build_grant_flow",
    "Dispatcher",
    "SpotifyClient",
    "AuthError",
    "CSRFInvalid",
    "Forbidden",
    "HTTPErr",
    "RateLimited",
    "ReAuthNeeded",
    "SpotifyWebError",
    "JSONFileStorage",
    "MemoryStorage",
    "PendingAuthorization",
    "TokenInfo",
    "TokenManager",
]
