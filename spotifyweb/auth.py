import base64
import enum
import hashlib
import json
import logging
import secrets
import time
import urllib.parse
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Union

import httpx

from .errors import AuthError, CSRFInvalid, ReAuthNeeded
from .token_manager import PendingAuthorization, TokenInfo, TokenManager

logger = logging.getLogger(__name__)

SPOTIFY_ACCOUNTS_BASE_URL = "https://accounts.spotify.com"
DEFAULT_TIMEOUT = 30.0

Scope = Union[str, Iterable[str]]
CallbackParams = Union[str, Mapping[str, Any]]


class GrantFlowKind(str, enum.Enum):
    AUTHORIZATION_CODE_PKCE = "pkce"
    AUTHORIZATION_CODE_CONFIDENTIAL = "authorization_code"
    CLIENT_CREDENTIALS = "client_credentials"


class FlowState(str, enum.Enum):
    IDLE = "idle"
    PENDING = "pending"
    COMPLETE = "complete"


@dataclass(frozen=True)
class ClientIdentity:
    client_id: str
    client_secret: Optional[str] = None
    redirect_uri: Optional[str] = None

    def require_for(self, kind: GrantFlowKind) -> None:
        """Raise ValueError if a field needed by ``kind`` is missing."""

        missing = []
        if not self.client_id:
            missing.append("client_id")
        if kind != GrantFlowKind.CLIENT_CREDENTIALS and not self.redirect_uri:
            missing.append("redirect_uri")
        if kind != GrantFlowKind.AUTHORIZATION_CODE_PKCE and not self.client_secret:
            missing.append("client_secret")
        if missing:
            raise ValueError(f"{kind.value} flow requires: {', '.join(missing)}")


def _base64url_no_pad(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def code_challenge_from_verifier(verifier: str) -> str:
    """Compute PKCE S256 code_challenge from code_verifier."""

    digest = hashlib.sha256((verifier or "").encode("utf-8")).digest()
    return _base64url_no_pad(digest)


def generate_code_verifier() -> str:
    # RFC 7636: verifier length 43-128 chars, characters from ALPHA / DIGIT / "-" / "." / "_" / "~"
    return _base64url_no_pad(secrets.token_bytes(96))[:128]


def generate_state() -> str:
    return _base64url_no_pad(secrets.token_bytes(12))


def basic_auth_header(identity: ClientIdentity) -> str:
    raw = f"{identity.client_id}:{identity.client_secret or ''}".encode("utf-8")
    return "Basic " + base64.b64encode(raw).decode("ascii")


def normalize_scope(scope: Optional[Scope]) -> str:
    if scope is None:
        return ""
    if isinstance(scope, str):
        return scope.strip()
    return " ".join([str(s).strip() for s in scope if str(s).strip()])


def extract_callback_params(redirect_url: str) -> Dict[str, str]:
    """Parse a redirect URL (or bare query string) into {code, state, error}.

    Missing keys are omitted.
    """

    raw = str(redirect_url or "").strip()
    query = urllib.parse.urlparse(raw).query if "?" in raw or "://" in raw else raw.lstrip("?")
    qs = urllib.parse.parse_qs(query)
    out: Dict[str, str] = {}
    for key in ("code", "state", "error"):
        if qs.get(key):
            out[key] = str(qs[key][0])
    return out


def _callback_value(params: Mapping[str, Any], key: str) -> Optional[str]:
    value = params.get(key)
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None:
        return None
    return str(value)


class SpotifyAuthFlow:
    """Shared token-endpoint plumbing for every grant flow."""

    kind: GrantFlowKind

    def __init__(
        self,
        identity: ClientIdentity,
        *,
        token_manager: Optional[TokenManager] = None,
        http_client: Optional[httpx.Client] = None,
        timeout: float = DEFAULT_TIMEOUT,
        accounts_base_url: str = SPOTIFY_ACCOUNTS_BASE_URL,
    ):
        identity.require_for(self.kind)
        self.identity = identity
        self.token_manager = token_manager or TokenManager()
        self.http_client = http_client
        self.timeout = timeout
        self.accounts_base_url = accounts_base_url.rstrip("/")

    @property
    def token_url(self) -> str:
        return f"{self.accounts_base_url}/api/token"

    @property
    def state(self) -> FlowState:
        if self.token_manager.get_pending() is not None:
            return FlowState.PENDING
        if self.token_manager.get() is not None:
            return FlowState.COMPLETE
        return FlowState.IDLE

    def logout(self) -> None:
        self.token_manager.clear_pending()
        self.token_manager.clear()

    def _request_token(self, form: Dict[str, Any], *, basic_auth: bool) -> TokenInfo:
        data = {k: str(v) for k, v in (form or {}).items() if v is not None}
        headers = {"Content-Type": "application/x-www-form-urlencoded"}
        if basic_auth:
            headers["Authorization"] = basic_auth_header(self.identity)

        grant_type = data.get("grant_type")
        logger.debug("POST %s (grant_type=%s)", self.token_url, grant_type)

        try:
            if self.http_client is not None:
                resp = self.http_client.post(self.token_url, data=data, headers=headers)
            else:
                with httpx.Client(timeout=self.timeout, follow_redirects=False) as client:
                    resp = client.post(self.token_url, data=data, headers=headers)
        except httpx.HTTPError as e:
            raise AuthError(f"Spotify token request failed: {e}") from e

        if not resp.is_success:
            detail = self._error_detail(resp)
            logger.warning("Spotify token request failed (HTTP %s): %s", resp.status_code, detail)
            raise AuthError(detail)

        try:
            payload = resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise AuthError(f"Spotify token response was not JSON (HTTP {resp.status_code})") from e

        if not isinstance(payload, dict):
            raise AuthError(f"Spotify token response was not an object: {payload}")

        if not payload.get("access_token"):
            raise AuthError("Spotify token response did not include an access_token")

        expires_in = payload.get("expires_in")
        try:
            valid_lifetime = not isinstance(expires_in, bool) and float(expires_in) > 0
        except (TypeError, ValueError):
            valid_lifetime = False
        if not valid_lifetime:
            raise AuthError(f"Spotify token response had an invalid expires_in: {expires_in!r}")

        token = TokenInfo.from_spotify_token_response(payload)

        logger.info("Spotify %s grant succeeded; token valid for %ss", grant_type, payload.get("expires_in"))
        return token

    @staticmethod
    def _error_detail(resp: httpx.Response) -> str:
        if resp.status_code >= 500:
            return resp.reason_phrase

        try:
            body = resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return resp.reason_phrase

        if isinstance(body, dict):
            return str(body.get("error_description") or body.get("error") or resp.reason_phrase)
        return resp.reason_phrase


class _AuthorizationCodeFlow(SpotifyAuthFlow):
    """Redirect-based flow: initiate() -> user approves -> complete(callback)."""

    use_pkce = False

    def get_authorize_url(
        self,
        *,
        state: str,
        scope: Optional[Scope] = None,
        code_challenge: Optional[str] = None,
        show_dialog: bool = False,
    ) -> str:
        params: Dict[str, str] = {
            "response_type": "code",
            "client_id": self.identity.client_id,
            "redirect_uri": str(self.identity.redirect_uri),
            "state": state,
        }
        scope_str = normalize_scope(scope)
        if scope_str:
            params["scope"] = scope_str
        if code_challenge:
            params["code_challenge_method"] = "S256"
            params["code_challenge"] = code_challenge
        if show_dialog:
            params["show_dialog"] = "true"

        return f"{self.accounts_base_url}/authorize?{urllib.parse.urlencode(params)}"

    def initiate(self, scope: Optional[Scope] = None, *, show_dialog: bool = False) -> str:
        """Start a new authorization round trip and return the URL to visit.

        Any previously pending authorization is discarded.
        """

        code_verifier = generate_code_verifier() if self.use_pkce else None
        pending = PendingAuthorization(
            state=generate_state(),
            code_verifier=code_verifier,
            created_at=time.time(),
        )
        self.token_manager.set_pending(pending)

        return self.get_authorize_url(
            state=pending.state,
            scope=scope,
            code_challenge=code_challenge_from_verifier(code_verifier) if code_verifier else None,
            show_dialog=show_dialog,
        )

    def complete(self, callback_params: CallbackParams) -> TokenInfo:
        """Validate the redirect callback and exchange its code for a token."""

        if isinstance(callback_params, str):
            callback_params = extract_callback_params(callback_params)
        callback_params = callback_params or {}

        pending = self.token_manager.get_pending()
        returned_state = _callback_value(callback_params, "state")
        if (
            pending is None
            or returned_state is None
            or not secrets.compare_digest(returned_state.encode("utf-8"), pending.state.encode("utf-8"))
        ):
            logger.warning("Rejected authorization callback with missing or unknown state")
            raise CSRFInvalid()

        code = _callback_value(callback_params, "code")
        if not code:
            raise AuthError(_callback_value(callback_params, "error"))

        token = self._request_token(self._exchange_form(code, pending), basic_auth=not self.use_pkce)
        self.token_manager.set(token)
        self.token_manager.clear_pending()
        return token

    def refresh(self) -> TokenInfo:
        """Trade the stored refresh token for a new access token."""

        current = self.token_manager.get()
        if current is None or not current.refresh_token:
            raise ReAuthNeeded("No refresh token available; run the authorization flow again.")

        form: Dict[str, Any] = {
            "grant_type": "refresh_token",
            "refresh_token": current.refresh_token,
        }
        if self.use_pkce:
            form["client_id"] = self.identity.client_id

        token = self._request_token(form, basic_auth=not self.use_pkce)

        # Spotify may omit refresh_token on refresh; keep existing.
        if not token.refresh_token:
            token = TokenInfo(
                access_token=token.access_token,
                token_type=token.token_type,
                expires_at=token.expires_at,
                refresh_token=current.refresh_token,
                scope=token.scope or current.scope,
            )

        self.token_manager.set(token)
        return token

    def _exchange_form(self, code: str, pending: PendingAuthorization) -> Dict[str, Any]:
        return {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.identity.redirect_uri,
        }


class SpotifyPKCEAuth(_AuthorizationCodeFlow):
    """Authorization Code + PKCE, for public clients that cannot hold a secret."""

    kind = GrantFlowKind.AUTHORIZATION_CODE_PKCE
    use_pkce = True

    def _exchange_form(self, code: str, pending: PendingAuthorization) -> Dict[str, Any]:
        form = super()._exchange_form(code, pending)
        form["client_id"] = self.identity.client_id
        form["code_verifier"] = pending.code_verifier
        return form


class SpotifyCodeAuth(_AuthorizationCodeFlow):
    """Authorization Code for confidential (server-side) clients."""

    kind = GrantFlowKind.AUTHORIZATION_CODE_CONFIDENTIAL


class SpotifyClientCredentialsAuth(SpotifyAuthFlow):
    """App-only access; no user, no redirect, no refresh token."""

    kind = GrantFlowKind.CLIENT_CREDENTIALS

    def authenticate(self) -> TokenInfo:
        token = self._request_token({"grant_type": "client_credentials"}, basic_auth=True)
        self.token_manager.set(token)
        return token

    def refresh(self) -> TokenInfo:
        return self.authenticate()


FLOW_CLASSES = {
    GrantFlowKind.AUTHORIZATION_CODE_PKCE: SpotifyPKCEAuth,
    GrantFlowKind.AUTHORIZATION_CODE_CONFIDENTIAL: SpotifyCodeAuth,
    GrantFlowKind.CLIENT_CREDENTIALS: SpotifyClientCredentialsAuth,
}


def build_grant_flow(kind: Union[GrantFlowKind, str], identity: ClientIdentity, **kwargs: Any) -> SpotifyAuthFlow:
    """Instantiate the flow class for ``kind``; kwargs go to its constructor."""

    return FLOW_CLASSES[GrantFlowKind(kind)](identity, **kwargs)
