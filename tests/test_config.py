import json
import os
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from spotifyweb.api import SpotifyWebApi
from spotifyweb.auth import GrantFlowKind, SpotifyClientCredentialsAuth, SpotifyPKCEAuth
from spotifyweb.config import (
    CLIENT_SECRET_ENV_VAR,
    DEFAULT_CONFIG,
    check_spotify_credentials,
    client_identity_from_config,
    load_config,
    validate_config,
)
from spotifyweb.token_manager import JSONFileStorage, MemoryStorage


class TestConfigFile(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmp.name, "config.json")
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump({"spotify_client_id": "abc"}, f)

    def tearDown(self):
        self.tmp.cleanup()

    def test_load_applies_defaults(self):
        config = load_config(self.path)
        self.assertEqual(config["spotify_client_id"], "abc")
        self.assertEqual(config["spotify_grant_flow"], "pkce")
        self.assertEqual(config["spotify_scopes"], DEFAULT_CONFIG["spotify_scopes"])

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            load_config(os.path.join(self.tmp.name, "nope.json"))


class TestValidation(unittest.TestCase):
    def test_defaults_need_a_client_id_value_only(self):
        ok, errors = validate_config(dict(DEFAULT_CONFIG))
        self.assertTrue(ok, errors)

    def test_bad_values(self):
        config = dict(DEFAULT_CONFIG, spotify_scopes=["ok", 3], spotify_http_timeout=True)
        ok, errors = validate_config(config)
        self.assertFalse(ok)
        self.assertEqual(len(errors), 2)


class TestCredentials(unittest.TestCase):
    def test_secret_falls_back_to_environment(self):
        config = dict(DEFAULT_CONFIG, spotify_client_id="abc", spotify_grant_flow="client_credentials")
        with mock.patch.dict(os.environ, {CLIENT_SECRET_ENV_VAR: "from-env"}):
            identity = client_identity_from_config(config)
            status = check_spotify_credentials(config)
        self.assertEqual(identity.client_secret, "from-env")
        self.assertTrue(status["ok"])

    def test_missing_secret_reported(self):
        config = dict(DEFAULT_CONFIG, spotify_client_id="abc", spotify_grant_flow="authorization_code")
        with mock.patch.dict(os.environ, {}, clear=True):
            status = check_spotify_credentials(config)
        self.assertFalse(status["ok"])
        self.assertIn("client_secret", status["message"])

    def test_api_from_config(self):
        config = dict(DEFAULT_CONFIG, spotify_client_id="abc")
        api = SpotifyWebApi.from_config(config, storage=MemoryStorage())
        self.assertIsInstance(api.auth, SpotifyPKCEAuth)
        self.assertIs(api.user.api, api.client)
        api.close()

        config = dict(config, spotify_grant_flow="client_credentials", spotify_client_secret="s")
        with tempfile.TemporaryDirectory() as td:
            config["spotify_token_cache_path"] = os.path.join(td, "tokens.json")
            with SpotifyWebApi.from_config(config) as api:
                self.assertIsInstance(api.auth, SpotifyClientCredentialsAuth)
                self.assertEqual(api.auth.kind, GrantFlowKind.CLIENT_CREDENTIALS)
                self.assertIsInstance(api.tokens.storage, JSONFileStorage)

    def test_api_starts_unauthenticated_with_corrupt_cache(self):
        with tempfile.TemporaryDirectory() as td:
            cache_path = os.path.join(td, "tokens.json")
            with open(cache_path, "w", encoding="utf-8") as f:
                f.write("{truncated")
            config = dict(DEFAULT_CONFIG, spotify_client_id="abc", spotify_token_cache_path=cache_path)

            with self.assertLogs("spotifyweb.token_manager", level="WARNING"):
                api = SpotifyWebApi.from_config(config)
            with api:
                self.assertIsNone(api.tokens.get())
                self.assertIsNone(api.tokens.get_pending())


if __name__ == "__main__":
    unittest.main(verbosity=2)
