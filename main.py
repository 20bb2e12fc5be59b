import json
import sys

from spotifyweb.api import SpotifyWebApi
from spotifyweb.config import (
    CONFIG_PATH,
    check_spotify_credentials,
    load_config,
    spotify_app_setup_instructions,
    validate_config,
)
from spotifyweb.logger import log_error, log_info, log_warning, setup_logging
from spotifyweb.menus.auth_menu import auth_menu

if __name__ == "__main__":
    config_path = sys.argv[1] if len(sys.argv) > 1 else CONFIG_PATH

    try:
        config = load_config(config_path)
    except FileNotFoundError as e:
        setup_logging()
        log_error(f"Config file not found: {e}")
        log_error("Please create config.json with at least spotify_client_id.")
        sys.exit(1)
    except json.JSONDecodeError as e:
        setup_logging()
        log_error(f"Config file contains invalid JSON: {e}")
        sys.exit(1)

    setup_logging(config.get("log_level", "INFO"))

    is_valid, errors = validate_config(config)
    if not is_valid:
        for error in errors:
            log_error(error)
        sys.exit(1)

    creds = check_spotify_credentials(config)
    if not creds.get("ok"):
        log_warning(creds.get("message") or "Spotify credentials are incomplete.")
        log_info(spotify_app_setup_instructions(redirect_uri=creds.get("redirect_uri") or ""))
        sys.exit(1)

    api = SpotifyWebApi.from_config(config)

    with api:
        auth_menu(api, config)

    log_info("Exiting program...")
