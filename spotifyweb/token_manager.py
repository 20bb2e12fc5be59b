import json
import logging
import os
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_CACHE_PATH = os.path.join("data", "spotify_tokens.json")

# Storage keys
ACCESS_TOKEN_KEY = "access_token"
EXPIRES_AT_KEY = "expires_at"
REFRESH_TOKEN_KEY = "refresh_token"
SCOPE_KEY = "scope"
TOKEN_TYPE_KEY = "token_type"
CSRF_TOKEN_KEY = "csrf_token"
CODE_VERIFIER_KEY = "code_verifier"
PENDING_CREATED_AT_KEY = "pending_created_at"

TOKEN_KEYS = (ACCESS_TOKEN_KEY, EXPIRES_AT_KEY, REFRESH_TOKEN_KEY, SCOPE_KEY, TOKEN_TYPE_KEY)
PENDING_KEYS = (CSRF_TOKEN_KEY, CODE_VERIFIER_KEY, PENDING_CREATED_AT_KEY)


@dataclass(frozen=True)
class TokenInfo:
    """Canonical credential held by TokenManager."""

    access_token: str
    token_type: str
    expires_at: float
    refresh_token: Optional[str] = None
    scope: Optional[str] = None

    @staticmethod
    def from_spotify_token_response(payload: Dict[str, Any], *, now: Optional[float] = None) -> "TokenInfo":
        """Convert Spotify token response JSON into TokenInfo.

        Spotify returns:
        - access_token
        - token_type
        - expires_in (seconds)
        - refresh_token (optional)
        - scope (space-delimited string)
        """

        now_ts = float(time.time() if now is None else now)
        expires_in = float(payload.get("expires_in", 0) or 0)

        return TokenInfo(
            access_token=str(payload.get("access_token") or ""),
            token_type=str(payload.get("token_type") or "Bearer"),
            expires_at=now_ts + expires_in,
            refresh_token=payload.get("refresh_token"),
            scope=payload.get("scope"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            ACCESS_TOKEN_KEY: self.access_token,
            TOKEN_TYPE_KEY: self.token_type,
            EXPIRES_AT_KEY: self.expires_at,
            REFRESH_TOKEN_KEY: self.refresh_token,
            SCOPE_KEY: self.scope,
        }

    def is_expired(self, *, skew_seconds: float = 60) -> bool:
        return time.time() >= float(self.expires_at) - float(skew_seconds)


@dataclass(frozen=True)
class PendingAuthorization:
    """CSRF state (and PKCE verifier) of a redirect flow awaiting its callback."""

    state: str
    code_verifier: Optional[str] = None
    created_at: float = 0.0


class TokenStorage(Protocol):
    """Key/value persistence hook. Saving None removes the key.

    Implementations may also offer ``save_many(values)`` to write several
    keys at once; TokenManager prefers it when present.
    """

    def save(self, key: str, value: Optional[str]) -> None:
        ...

    def load(self, key: str) -> Optional[str]:
        ...


class MemoryStorage:
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def save(self, key: str, value: Optional[str]) -> None:
        if value is None:
            self._data.pop(key, None)
        else:
            self._data[key] = str(value)

    def save_many(self, values: Dict[str, Optional[str]]) -> None:
        for key, value in values.items():
            self.save(key, value)

    def load(self, key: str) -> Optional[str]:
        return self._data.get(key)


class JSONFileStorage:
    """Stores all keys in a single JSON object on disk."""

    def __init__(self, *, cache_path: str = DEFAULT_TOKEN_CACHE_PATH):
        self.cache_path = cache_path

    def ensure_cache_dir(self) -> None:
        directory = os.path.dirname(self.cache_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

    def _read(self) -> Dict[str, str]:
        if not os.path.exists(self.cache_path):
            return {}

        with open(self.cache_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise ValueError(f"Token cache {self.cache_path} does not contain a JSON object")
        return data

    def save(self, key: str, value: Optional[str]) -> None:
        self.save_many({key: value})

    def save_many(self, values: Dict[str, Optional[str]]) -> None:
        """Apply every key in one file replace, so readers see all or none of them."""

        try:
            data = self._read()
        except ValueError as e:
            logger.warning("Replacing unreadable token cache %s: %s", self.cache_path, e)
            data = {}
        for key, value in values.items():
            if value is None:
                data.pop(key, None)
            else:
                data[key] = str(value)

        self.ensure_cache_dir()
        tmp_path = f"{self.cache_path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, self.cache_path)

    def load(self, key: str) -> Optional[str]:
        value = self._read().get(key)
        return None if value is None else str(value)


class TokenManager:
    """Holds the current credential and any pending authorization.

    Credentials are immutable, so ``set`` swaps a single reference under
    the lock and concurrent ``get`` callers see either the old or the new
    credential, never a mix. The optional storage is written before memory;
    if it fails, the keys already written are rolled back and memory keeps
    the previous credential.
    """

    def __init__(self, storage: Optional[TokenStorage] = None):
        self.storage = storage
        self._lock = threading.RLock()
        self._token: Optional[TokenInfo] = None
        self._pending: Optional[PendingAuthorization] = None

    # -----------------
    # Credential
    # -----------------

    def get(self) -> Optional[TokenInfo]:
        with self._lock:
            return self._token

    def set(self, token: TokenInfo) -> None:
        if not token.access_token:
            raise ValueError("Refusing to store a credential without an access token")

        values = {key: None if value is None else str(value) for key, value in token.to_dict().items()}
        with self._lock:
            self._write(values)
            self._token = token
        logger.debug("Stored Spotify credential (expires_at=%s)", token.expires_at)

    def clear(self) -> None:
        with self._lock:
            self._write(dict.fromkeys(TOKEN_KEYS))
            self._token = None
        logger.debug("Cleared Spotify credential")

    def restore(self) -> Optional[TokenInfo]:
        """Load a previously persisted credential (and pending flow) from storage.

        An unreadable cache is treated as "no token".
        """

        if self.storage is None:
            return None

        with self._lock:
            try:
                token, pending = self._load_persisted()
            except (OSError, ValueError) as e:
                logger.warning("Ignoring unreadable Spotify token cache: %s", e)
                return None

            self._token = token
            self._pending = pending
            return self._token

    def _load_persisted(self) -> Tuple[Optional[TokenInfo], Optional[PendingAuthorization]]:
        token = None
        access_token = self.storage.load(ACCESS_TOKEN_KEY)
        if access_token:
            token = TokenInfo(
                access_token=access_token,
                token_type=self.storage.load(TOKEN_TYPE_KEY) or "Bearer",
                expires_at=float(self.storage.load(EXPIRES_AT_KEY) or 0),
                refresh_token=self.storage.load(REFRESH_TOKEN_KEY),
                scope=self.storage.load(SCOPE_KEY),
            )

        pending = None
        state = self.storage.load(CSRF_TOKEN_KEY)
        if state:
            pending = PendingAuthorization(
                state=state,
                code_verifier=self.storage.load(CODE_VERIFIER_KEY),
                created_at=float(self.storage.load(PENDING_CREATED_AT_KEY) or 0),
            )
        return token, pending

    def _write(self, values: Dict[str, Optional[str]]) -> None:
        """Write all keys or none of them."""

        if self.storage is None:
            return

        save_many = getattr(self.storage, "save_many", None)
        if callable(save_many):
            try:
                save_many(values)
            except Exception:
                logger.exception("Failed to persist Spotify token state")
                raise
            return

        previous = {key: self.storage.load(key) for key in values}
        written = []
        try:
            for key, value in values.items():
                self.storage.save(key, value)
                written.append(key)
        except Exception:
            logger.exception("Failed to persist Spotify token state; rolling back %d key(s)", len(written))
            for key in written:
                try:
                    self.storage.save(key, previous[key])
                except Exception:
                    logger.exception("Rollback of token storage key %r failed", key)
            raise

    # -----------------
    # Pending authorization
    # -----------------

    def set_pending(self, pending: PendingAuthorization) -> None:
        with self._lock:
            if self._pending is not None:
                logger.debug("Discarding previous pending authorization")
            self._write(
                {
                    CSRF_TOKEN_KEY: pending.state,
                    CODE_VERIFIER_KEY: pending.code_verifier,
                    PENDING_CREATED_AT_KEY: str(pending.created_at),
                }
            )
            self._pending = pending

    def get_pending(self) -> Optional[PendingAuthorization]:
        with self._lock:
            return self._pending

    def clear_pending(self) -> None:
        with self._lock:
            self._write(dict.fromkeys(PENDING_KEYS))
            self._pending = None
