import json
import os
from typing import Any, Dict, Optional

from .auth import ClientIdentity, GrantFlowKind
from .token_manager import DEFAULT_TOKEN_CACHE_PATH

CONFIG_PATH = "config.json"

# Falls back to this when spotify_client_secret is empty, so the secret can stay out of config.json.
CLIENT_SECRET_ENV_VAR = "SPOTIFY_CLIENT_SECRET"

# Default configuration values
DEFAULT_CONFIG = {
    "spotify_client_id": "",
    "spotify_client_secret": "",
    "spotify_redirect_uri": "http://127.0.0.1:8888/callback",
    "spotify_grant_flow": GrantFlowKind.AUTHORIZATION_CODE_PKCE.value,
    "spotify_scopes": [
        "user-read-private",
        "user-library-read",
        "playlist-read-private",
    ],
    "spotify_cache_tokens": True,
    "spotify_token_cache_path": DEFAULT_TOKEN_CACHE_PATH,
    "spotify_http_timeout": 30,
    "log_level": "INFO",
}

# Validation rules for config fields
CONFIG_SCHEMA = {
    "spotify_client_id": {"type": str, "required": True},
    "spotify_client_secret": {"type": str, "required": False},
    "spotify_redirect_uri": {"type": str, "required": False},
    "spotify_grant_flow": {
        "type": str,
        "required": False,
        "choices": [kind.value for kind in GrantFlowKind],
    },
    "spotify_scopes": {"type": list, "required": False, "element_type": str},
    "spotify_cache_tokens": {"type": bool, "required": False},
    "spotify_token_cache_path": {"type": str, "required": False},
    "spotify_http_timeout": {"type": (int, float), "required": False, "min": 1, "max": 300},
    "log_level": {
        "type": str,
        "required": False,
        "choices": ["DEBUG", "INFO", "WARNING", "ERROR"],
    },
}


def load_config(path: str = CONFIG_PATH) -> Dict[str, Any]:
    """Load configuration from file, applying defaults for missing fields."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"Config file {path} not found.")

    with open(path, "r", encoding="utf-8") as f:
        config = json.load(f)

    # Apply defaults for missing fields
    for key, value in DEFAULT_CONFIG.items():
        if key not in config:
            config[key] = value

    return config


def validate_config(config: Dict[str, Any]) -> tuple[bool, list[str]]:
    """
    Validate configuration against schema.
    Returns (is_valid, list_of_errors).
    """
    errors = []

    for key, rules in CONFIG_SCHEMA.items():
        # Check required fields
        if rules.get("required", False) and key not in config:
            errors.append(f"Missing required field: {key}")
            continue

        if key not in config:
            continue

        value = config[key]

        # bool is an int subclass; don't let True pass as a timeout
        expected_type = rules.get("type")
        if expected_type and (not isinstance(value, expected_type) or (isinstance(value, bool) and expected_type is not bool)):
            type_names = expected_type.__name__ if not isinstance(expected_type, tuple) else "/".join(t.__name__ for t in expected_type)
            errors.append(f"Field '{key}' must be {type_names}, got {type(value).__name__}")
            continue

        if isinstance(value, list) and "element_type" in rules:
            elem_type = rules["element_type"]
            bad_elems = [v for v in value if not isinstance(v, elem_type)]
            if bad_elems:
                errors.append(
                    f"Field '{key}' must be a list of {elem_type.__name__}, got invalid elements: {bad_elems}"
                )
                continue

        if "choices" in rules and value not in rules["choices"]:
            errors.append(f"Field '{key}' must be one of {rules['choices']}, got '{value}'")

        if isinstance(value, (int, float)) and not isinstance(value, bool):
            if "min" in rules and value < rules["min"]:
                errors.append(f"Field '{key}' must be >= {rules['min']}, got {value}")
            if "max" in rules and value > rules["max"]:
                errors.append(f"Field '{key}' must be <= {rules['max']}, got {value}")

    return len(errors) == 0, errors


def get_client_secret(config: Dict[str, Any]) -> Optional[str]:
    secret = str((config or {}).get("spotify_client_secret", "") or "").strip()
    return secret or os.environ.get(CLIENT_SECRET_ENV_VAR) or None


def get_grant_flow_kind(config: Dict[str, Any]) -> GrantFlowKind:
    return GrantFlowKind(str((config or {}).get("spotify_grant_flow") or DEFAULT_CONFIG["spotify_grant_flow"]))


def client_identity_from_config(config: Dict[str, Any]) -> ClientIdentity:
    config = config or {}
    return ClientIdentity(
        client_id=str(config.get("spotify_client_id", "")).strip(),
        client_secret=get_client_secret(config),
        redirect_uri=str(config.get("spotify_redirect_uri", "")).strip() or None,
    )


def check_spotify_credentials(config: Dict[str, Any]) -> Dict[str, Any]:
    """Check the identity fields needed by the configured grant flow.

    Returns {ok, grant_flow, client_id, redirect_uri, scopes, message}.
    """

    config = config or {}
    scopes = list(config.get("spotify_scopes", []) or [])
    identity = client_identity_from_config(config)

    status: Dict[str, Any] = {
        "ok": True,
        "grant_flow": str(config.get("spotify_grant_flow", "")),
        "client_id": identity.client_id,
        "redirect_uri": identity.redirect_uri or "",
        "scopes": scopes,
        "message": "Spotify credentials look OK.",
    }

    try:
        kind = get_grant_flow_kind(config)
        identity.require_for(kind)
    except ValueError as e:
        status["ok"] = False
        status["message"] = f"{e}. Set the missing fields in {CONFIG_PATH} (client secret may come from ${CLIENT_SECRET_ENV_VAR})."
        return status

    status["grant_flow"] = kind.value
    return status


def spotify_app_setup_instructions(*, redirect_uri: str = "http://127.0.0.1:8888/callback") -> str:
    """Return user-facing setup instructions for creating a Spotify Developer app."""

    redirect_uri = str(redirect_uri or "").strip() or "http://127.0.0.1:8888/callback"
    return (
        "Spotify app setup:\n"
        "1) Go to https://developer.spotify.com/dashboard\n"
        "2) Create an app (or select an existing app)\n"
        f"3) Add this Redirect URI in the app settings: {redirect_uri}\n"
        f"4) Copy the Client ID into {CONFIG_PATH} as spotify_client_id\n"
        f"5) For server-side or app-only flows, export the Client Secret as ${CLIENT_SECRET_ENV_VAR}\n\n"
        "Notes:\n"
        "- 'pkce' needs no client secret; 'authorization_code' and 'client_credentials' do.\n"
        "- Redirect URI must match *exactly* what you configure in the Spotify dashboard.\n"
    )
