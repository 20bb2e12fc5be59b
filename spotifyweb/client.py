import json
import logging
from typing import Any, Dict, Optional, Protocol

import httpx

from .errors import HTTPErr, classify_status, parse_retry_after
from .token_manager import TokenManager

logger = logging.getLogger(__name__)

SPOTIFY_API_BASE_URL = "https://api.spotify.com/v1"


class Dispatcher(Protocol):
    """The narrow capability resource wrappers depend on."""

    def auth_get(self, path: str, query: Optional[Dict[str, Any]] = None) -> Any:
        ...

    def auth_put(self, path: str, body: Any = None, query: Optional[Dict[str, Any]] = None) -> None:
        ...

    def auth_delete(self, path: str, query: Optional[Dict[str, Any]] = None, body: Any = None) -> None:
        ...


def clean_query(query: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """Drop empty values and comma-join lists (Spotify's ids=a,b,c convention)."""

    out: Dict[str, str] = {}
    for key, value in (query or {}).items():
        if value is None or value == "":
            continue
        if isinstance(value, (list, tuple)):
            value = ",".join(str(v) for v in value)
        elif isinstance(value, bool):
            value = "true" if value else "false"
        out[key] = str(value)
    return out


class SpotifyClient:
    """Authenticated Spotify Web API dispatcher.

    Every call reads the current credential from the TokenManager and sends
    it as a bearer token. There is no retry and no automatic refresh: a
    rejected token surfaces as ReAuthNeeded and the caller decides what to
    do next.
    """

    def __init__(
        self,
        token_manager: TokenManager,
        *,
        base_url: str = SPOTIFY_API_BASE_URL,
        timeout: float = 30.0,
        http_client: Optional[httpx.Client] = None,
    ):
        self.token_manager = token_manager
        self.base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def __enter__(self) -> "SpotifyClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # -----------------
    # HTTP helpers
    # -----------------

    def _headers(self) -> Dict[str, str]:
        token = self.token_manager.get()
        access_token = token.access_token if token is not None else ""
        return {
            # Sent even when empty; Spotify answers 401 and that becomes ReAuthNeeded.
            "Authorization": f"Bearer {access_token}".rstrip(),
            "Accept": "application/json",
        }

    def _request(
        self,
        method: str,
        path: str,
        *,
        query: Optional[Dict[str, Any]] = None,
        body: Any = None,
    ) -> httpx.Response:
        url = f"{self.base_url}{path}"
        headers = self._headers()
        content = None
        if body is not None:
            headers["Content-Type"] = "application/json"
            content = json.dumps(body)

        try:
            resp = self._http.request(method, url, params=clean_query(query), headers=headers, content=content)
        except httpx.HTTPError as e:
            logger.warning("Spotify API %s %s failed: %s", method, path, e)
            raise HTTPErr(None, f"Spotify API request failed: {e}") from e

        if not resp.is_success:
            logger.debug("Spotify API %s %s -> HTTP %s", method, path, resp.status_code)
            raise classify_status(
                resp.status_code,
                detail=self._api_error_message(resp),
                retry_after=parse_retry_after(resp.headers.get("Retry-After")),
            )

        return resp

    @staticmethod
    def _api_error_message(resp: httpx.Response) -> Optional[str]:
        # Web API errors look like {"error": {"status": 401, "message": "..."}}
        try:
            body = resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return None
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        return None

    # -----------------
    # Dispatch
    # -----------------

    def auth_get(self, path: str, query: Optional[Dict[str, Any]] = None) -> Any:
        resp = self._request("GET", path, query=query)
        if not resp.content:
            return None
        try:
            return resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise HTTPErr(resp.status_code, "Spotify API response was not JSON") from e

    def auth_put(self, path: str, body: Any = None, query: Optional[Dict[str, Any]] = None) -> None:
        # PUT always carries a JSON body; endpoints that take ids in the query get {}.
        self._request("PUT", path, query=query, body=body if body is not None else {})

    def auth_delete(self, path: str, query: Optional[Dict[str, Any]] = None, body: Any = None) -> None:
        self._request("DELETE", path, query=query, body=body)
