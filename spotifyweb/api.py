from typing import Any, Dict, Optional, Union

import httpx

from .auth import ClientIdentity, GrantFlowKind, SpotifyAuthFlow, build_grant_flow
from .client import SPOTIFY_API_BASE_URL, SpotifyClient
from .config import client_identity_from_config, get_grant_flow_kind
from .resources import SpotifyAlbums, SpotifyArtists, SpotifyPlaylists, SpotifyUser
from .token_manager import DEFAULT_TOKEN_CACHE_PATH, JSONFileStorage, TokenManager, TokenStorage


class SpotifyWebApi:
    """One client instance: identity, credential store, grant flow, dispatcher, wrappers.

    Example::

        api = SpotifyWebApi(ClientIdentity("id", redirect_uri="http://127.0.0.1:8888/callback"))
        url = api.auth.initiate("user-library-read")
        # ... user approves, browser lands on redirect_uri ...
        api.auth.complete(callback_url)
        api.user.get_current_profile()
    """

    def __init__(
        self,
        identity: ClientIdentity,
        kind: Union[GrantFlowKind, str] = GrantFlowKind.AUTHORIZATION_CODE_PKCE,
        *,
        storage: Optional[TokenStorage] = None,
        timeout: float = 30.0,
        http_client: Optional[httpx.Client] = None,
        base_url: str = SPOTIFY_API_BASE_URL,
    ):
        self.identity = identity
        self.tokens = TokenManager(storage)
        self.tokens.restore()

        self.auth: SpotifyAuthFlow = build_grant_flow(
            kind,
            identity,
            token_manager=self.tokens,
            http_client=http_client,
            timeout=timeout,
        )
        self.client = SpotifyClient(self.tokens, base_url=base_url, timeout=timeout, http_client=http_client)

        self.albums = SpotifyAlbums(self.client)
        self.artists = SpotifyArtists(self.client)
        self.playlists = SpotifyPlaylists(self.client)
        self.user = SpotifyUser(self.client)

    @classmethod
    def from_config(cls, config: Dict[str, Any], **kwargs: Any) -> "SpotifyWebApi":
        if "storage" not in kwargs and bool(config.get("spotify_cache_tokens", True)):
            kwargs["storage"] = JSONFileStorage(
                cache_path=str(config.get("spotify_token_cache_path") or DEFAULT_TOKEN_CACHE_PATH)
            )
        kwargs.setdefault("timeout", float(config.get("spotify_http_timeout", 30)))
        return cls(client_identity_from_config(config), get_grant_flow_kind(config), **kwargs)

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "SpotifyWebApi":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
