"""Error kinds raised by the auth flows and the authenticated dispatcher."""

from typing import Optional


class SpotifyWebError(Exception):
    """Base class for every error raised by spotifyweb."""

    default_detail: Optional[str] = None

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail if detail is not None else self.default_detail
        super().__init__(self.detail or self.__class__.__name__)


class AuthError(SpotifyWebError):
    """Authorization or token exchange failed."""


class CSRFInvalid(SpotifyWebError):
    """Callback state is missing or does not match the one we generated."""

    default_detail = "Request not started by us."


class ReAuthNeeded(SpotifyWebError):
    """Access token was rejected (HTTP 401)."""

    default_detail = "Access token rejected; refresh or re-authenticate."


class Forbidden(SpotifyWebError):
    """Access token lacks the required scope (HTTP 403)."""

    default_detail = "It's possible that you do not have the necessary client scope to perform this action."


class RateLimited(SpotifyWebError):
    """Spotify is throttling requests (HTTP 429)."""

    default_detail = "Rate limited by Spotify."

    def __init__(self, detail: Optional[str] = None, retry_after: Optional[float] = None):
        super().__init__(detail)
        self.retry_after = retry_after


class HTTPErr(SpotifyWebError):
    """Any other non-2xx response. status_code is None for transport failures."""

    def __init__(self, status_code: Optional[int], detail: Optional[str] = None):
        self.status_code = status_code
        if detail is None:
            detail = f"HTTP {status_code}" if status_code is not None else "HTTP request failed"
        super().__init__(detail)


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except (TypeError, ValueError):
        return None


def classify_status(
    status_code: int,
    *,
    detail: Optional[str] = None,
    retry_after: Optional[float] = None,
) -> SpotifyWebError:
    """Map a non-2xx Web API status code onto its error kind."""

    if status_code == 401:
        return ReAuthNeeded(detail)
    if status_code == 403:
        return Forbidden(detail)
    if status_code == 429:
        return RateLimited(detail, retry_after=retry_after)
    return HTTPErr(status_code, detail)
