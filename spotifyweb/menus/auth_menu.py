import time
import webbrowser

import questionary

from ..api import SpotifyWebApi
from ..auth import GrantFlowKind, SpotifyClientCredentialsAuth
from ..errors import CSRFInvalid, ReAuthNeeded, SpotifyWebError
from ..logger import log_error, log_info, log_success, log_warning


def _format_expiry(expires_at: float) -> str:
    return time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(float(expires_at)))


def token_status(api: SpotifyWebApi) -> str:
    token = api.tokens.get()
    if token is None:
        return "No Spotify token found."
    expired = token.is_expired(skew_seconds=0)
    refresh = "YES" if token.refresh_token else "NO"
    return (
        f"Token: YES | Expired: {'YES' if expired else 'NO'} | Refreshable: {refresh} "
        f"| Expires at: {_format_expiry(token.expires_at)}"
    )


def authenticate(api: SpotifyWebApi, config: dict) -> bool:
    """Run the configured grant flow. Redirect flows use paste-back of the redirect URL."""

    if isinstance(api.auth, SpotifyClientCredentialsAuth):
        token = api.auth.authenticate()
        log_success(f"Spotify app-only authentication successful. Token expires at: {_format_expiry(token.expires_at)}")
        return True

    auth_url = api.auth.initiate(config.get("spotify_scopes") or [], show_dialog=True)

    log_info("\n" + "=" * 72)
    log_info("SPOTIFY AUTHENTICATION")
    log_info("=" * 72)
    log_info("1) A browser login will open (or you can copy/paste the URL).")
    log_info("2) After approving, Spotify will redirect you to your redirect_uri.")
    log_info("3) Copy the FULL redirect URL from the browser and paste it back here.")
    log_info("")
    log_info(f"Authorize URL:\n{auth_url}")
    log_info("=" * 72)

    if questionary.confirm("Open the authorize URL in your default browser?", default=True).ask():
        if not webbrowser.open(auth_url):
            log_warning("Could not open a browser; copy the URL above instead.")

    pasted = (questionary.text("Paste the full redirect URL:").ask() or "").strip()
    if not pasted:
        log_warning("No redirect URL provided. Cancelling auth.")
        return False

    try:
        token = api.auth.complete(pasted)
    except CSRFInvalid:
        log_error("OAuth state mismatch. For safety, cancelling this authentication attempt.")
        log_info("Tip: Make sure you paste the redirect URL from the most recent login attempt.")
        return False

    log_success(f"Spotify authentication successful. Token expires at: {_format_expiry(token.expires_at)}")
    return True


def refresh(api: SpotifyWebApi) -> bool:
    try:
        token = api.auth.refresh()
    except ReAuthNeeded as e:
        log_warning(str(e))
        return False
    log_success(f"Token refreshed. Expires at: {_format_expiry(token.expires_at)}")
    return True


def show_profile(api: SpotifyWebApi) -> None:
    profile = api.user.get_current_profile() or {}
    log_info(f"Logged in as: {profile.get('display_name') or profile.get('id')} ({profile.get('country', '?')})")


def auth_menu(api: SpotifyWebApi, config: dict) -> None:
    """Interactive account menu. Spotify errors are reported and the menu keeps running."""

    actions = {
        "Authenticate with Spotify": lambda: authenticate(api, config),
        "Token status": lambda: log_info(token_status(api)),
        "Refresh token": lambda: refresh(api),
        "Show my profile": lambda: show_profile(api),
        "Log out": lambda: (api.auth.logout(), log_info("Spotify credential cleared.")),
    }
    if api.auth.kind == GrantFlowKind.CLIENT_CREDENTIALS:
        actions.pop("Show my profile")

    while True:
        choice = questionary.select(
            "🎧 Spotify Account — What would you like to do?",
            choices=[*actions.keys(), "Exit"],
        ).ask()

        if choice is None or choice == "Exit":
            break

        try:
            actions[choice]()
        except ReAuthNeeded:
            log_warning("Spotify rejected the access token. Refresh it or authenticate again.")
        except SpotifyWebError as e:
            log_error(f"{choice} failed: {type(e).__name__}: {e}")
