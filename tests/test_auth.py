import base64
import hashlib
import sys
import time
import unittest
from pathlib import Path

import httpx

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from spotifyweb.auth import (
    ClientIdentity,
    FlowState,
    GrantFlowKind,
    SpotifyClientCredentialsAuth,
    SpotifyCodeAuth,
    SpotifyPKCEAuth,
    build_grant_flow,
    code_challenge_from_verifier,
    extract_callback_params,
    generate_code_verifier,
)
from spotifyweb.client import SpotifyClient
from spotifyweb.errors import AuthError, CSRFInvalid, ReAuthNeeded
from spotifyweb.token_manager import TokenInfo, TokenManager
from tests.helpers import RecordingTransport, form_of, query_of

REDIRECT_URI = "http://127.0.0.1:8888/callback"
PUBLIC = ClientIdentity("public-id", redirect_uri=REDIRECT_URI)
CONFIDENTIAL = ClientIdentity("server-id", client_secret="s3cret", redirect_uri=REDIRECT_URI)
APP_ONLY = ClientIdentity("app-id", client_secret="app-secret")


def _expected_basic(client_id, secret):
    return "Basic " + base64.b64encode(f"{client_id}:{secret}".encode()).decode()


class TestPKCEHelpers(unittest.TestCase):
    def test_code_challenge_matches_sha256_base64url_no_pad(self):
        verifier = "abc"
        expected = base64.urlsafe_b64encode(hashlib.sha256(verifier.encode("utf-8")).digest()).decode("utf-8").rstrip("=")
        self.assertEqual(code_challenge_from_verifier(verifier), expected)
        self.assertNotIn("=", code_challenge_from_verifier(verifier))

    def test_generated_verifier_is_rfc7636_shaped(self):
        for _ in range(20):
            verifier = generate_code_verifier()
            self.assertGreaterEqual(len(verifier), 43)
            self.assertLessEqual(len(verifier), 128)
            self.assertRegex(verifier, r"^[A-Za-z0-9_\-]+$")

    def test_extract_callback_params(self):
        parsed = extract_callback_params(REDIRECT_URI + "?code=AAA&state=BBB")
        self.assertEqual(parsed, {"code": "AAA", "state": "BBB"})
        self.assertEqual(extract_callback_params("error=access_denied&state=X"), {"state": "X", "error": "access_denied"})


class TestClientIdentity(unittest.TestCase):
    def test_pkce_needs_redirect_uri_but_no_secret(self):
        with self.assertRaises(ValueError):
            SpotifyPKCEAuth(ClientIdentity("id"))
        SpotifyPKCEAuth(PUBLIC)

    def test_confidential_and_client_credentials_need_secret(self):
        with self.assertRaises(ValueError):
            SpotifyCodeAuth(PUBLIC)
        with self.assertRaises(ValueError):
            SpotifyClientCredentialsAuth(ClientIdentity("id"))

    def test_build_grant_flow_accepts_config_strings(self):
        self.assertIsInstance(build_grant_flow("pkce", PUBLIC), SpotifyPKCEAuth)
        self.assertIsInstance(build_grant_flow("authorization_code", CONFIDENTIAL), SpotifyCodeAuth)
        self.assertIsInstance(
            build_grant_flow(GrantFlowKind.CLIENT_CREDENTIALS, APP_ONLY), SpotifyClientCredentialsAuth
        )


class TestPKCEFlow(unittest.TestCase):
    def setUp(self):
        self.transport = RecordingTransport()
        self.tokens = TokenManager()
        self.auth = SpotifyPKCEAuth(PUBLIC, token_manager=self.tokens, http_client=self.transport.client())

    def test_initiate_builds_authorize_url(self):
        self.assertEqual(self.auth.state, FlowState.IDLE)
        url = self.auth.initiate("user-library-read")

        self.assertTrue(url.startswith("https://accounts.spotify.com/authorize?"))
        params = query_of(url)
        pending = self.tokens.get_pending()
        self.assertEqual(params["response_type"], "code")
        self.assertEqual(params["client_id"], "public-id")
        self.assertEqual(params["redirect_uri"], REDIRECT_URI)
        self.assertEqual(params["scope"], "user-library-read")
        self.assertEqual(params["state"], pending.state)
        self.assertEqual(params["code_challenge_method"], "S256")
        self.assertEqual(params["code_challenge"], code_challenge_from_verifier(pending.code_verifier))
        self.assertEqual(self.auth.state, FlowState.PENDING)
        self.assertEqual(self.transport.requests, [])

    def test_scope_list_is_space_joined(self):
        url = self.auth.initiate(["user-library-read", "playlist-read-private"])
        self.assertEqual(query_of(url)["scope"], "user-library-read playlist-read-private")

    def test_full_flow_then_dispatch(self):
        self.transport.responses.append(
            httpx.Response(200, json={"access_token": "T1", "token_type": "Bearer", "expires_in": 3600, "refresh_token": "R1"})
        )
        self.transport.responses.append(httpx.Response(200, json={"id": "me", "display_name": "Me"}))

        url = self.auth.initiate("user-library-read")
        state = query_of(url)["state"]
        verifier = self.tokens.get_pending().code_verifier

        started = time.time()
        token = self.auth.complete({"code": "abc", "state": state})

        exchange = self.transport.requests[0]
        self.assertEqual(str(exchange.url), "https://accounts.spotify.com/api/token")
        self.assertEqual(exchange.headers["Content-Type"], "application/x-www-form-urlencoded")
        self.assertNotIn("Authorization", exchange.headers)
        self.assertEqual(
            form_of(exchange),
            {
                "grant_type": "authorization_code",
                "code": "abc",
                "redirect_uri": REDIRECT_URI,
                "client_id": "public-id",
                "code_verifier": verifier,
            },
        )
        self.assertEqual(query_of(url)["code_challenge"], code_challenge_from_verifier(verifier))

        self.assertEqual(token.access_token, "T1")
        self.assertEqual(token.refresh_token, "R1")
        self.assertGreater(token.expires_at, started)
        self.assertIs(self.tokens.get(), token)
        self.assertIsNone(self.tokens.get_pending())
        self.assertEqual(self.auth.state, FlowState.COMPLETE)

        client = SpotifyClient(self.tokens, http_client=self.transport.client())
        self.assertEqual(client.auth_get("/me"), {"id": "me", "display_name": "Me"})
        self.assertEqual(self.transport.requests[1].headers["Authorization"], "Bearer T1")

    def test_complete_accepts_redirect_url(self):
        self.transport.responses.append(httpx.Response(200, json={"access_token": "T1", "expires_in": 3600}))
        state = query_of(self.auth.initiate("user-library-read"))["state"]

        token = self.auth.complete(f"{REDIRECT_URI}?code=abc&state={state}")
        self.assertEqual(token.access_token, "T1")

    def test_wrong_state_is_rejected_without_token_request(self):
        self.auth.initiate("user-library-read")
        with self.assertRaises(CSRFInvalid):
            self.auth.complete({"code": "abc", "state": "wrong"})
        self.assertEqual(self.transport.requests, [])
        self.assertIsNone(self.tokens.get())

    def test_missing_state_is_rejected(self):
        self.auth.initiate("user-library-read")
        with self.assertRaises(CSRFInvalid):
            self.auth.complete({"code": "abc"})
        self.assertEqual(self.transport.requests, [])

    def test_callback_without_initiate_is_rejected(self):
        with self.assertRaises(CSRFInvalid):
            self.auth.complete({"code": "abc", "state": "anything"})
        self.assertEqual(self.transport.requests, [])

    def test_second_initiate_discards_first(self):
        first_state = query_of(self.auth.initiate("user-library-read"))["state"]
        self.auth.initiate("user-library-read")

        with self.assertRaises(CSRFInvalid):
            self.auth.complete({"code": "abc", "state": first_state})

    def test_missing_code_raises_provider_error(self):
        state = query_of(self.auth.initiate("user-library-read"))["state"]
        with self.assertRaises(AuthError) as ctx:
            self.auth.complete({"state": state, "error": "access_denied"})
        self.assertEqual(ctx.exception.detail, "access_denied")
        self.assertEqual(self.transport.requests, [])

    def test_client_error_uses_error_description(self):
        self.transport.responses.append(
            httpx.Response(400, json={"error": "invalid_grant", "error_description": "Invalid authorization code"})
        )
        state = query_of(self.auth.initiate("user-library-read"))["state"]

        with self.assertRaises(AuthError) as ctx:
            self.auth.complete({"code": "bad", "state": state})
        self.assertEqual(ctx.exception.detail, "Invalid authorization code")
        self.assertIsNone(self.tokens.get())

    def test_client_error_without_json_falls_back_to_reason(self):
        self.transport.responses.append(httpx.Response(400, text="nope"))
        state = query_of(self.auth.initiate("user-library-read"))["state"]

        with self.assertRaises(AuthError) as ctx:
            self.auth.complete({"code": "bad", "state": state})
        self.assertEqual(ctx.exception.detail, "Bad Request")

    def test_transport_failure_is_auth_error(self):
        def boom(request):
            raise httpx.ConnectError("connection refused", request=request)

        self.transport.responses.append(boom)
        state = query_of(self.auth.initiate("user-library-read"))["state"]

        with self.assertRaises(AuthError):
            self.auth.complete({"code": "abc", "state": state})

    def test_refresh_keeps_existing_refresh_token(self):
        self.tokens.set(TokenInfo("old", "Bearer", time.time() + 10, refresh_token="R1", scope="user-library-read"))
        self.transport.responses.append(httpx.Response(200, json={"access_token": "T2", "expires_in": 3600}))

        token = self.auth.refresh()

        self.assertEqual(
            form_of(self.transport.requests[0]),
            {"grant_type": "refresh_token", "refresh_token": "R1", "client_id": "public-id"},
        )
        self.assertEqual(token.access_token, "T2")
        self.assertEqual(token.refresh_token, "R1")
        self.assertEqual(token.scope, "user-library-read")
        self.assertIs(self.tokens.get(), token)

    def test_refresh_without_refresh_token_needs_reauth(self):
        with self.assertRaises(ReAuthNeeded):
            self.auth.refresh()
        self.assertEqual(self.transport.requests, [])

    def test_logout_clears_everything(self):
        self.tokens.set(TokenInfo("T1", "Bearer", time.time() + 3600))
        self.auth.initiate("user-library-read")
        self.auth.logout()
        self.assertIsNone(self.tokens.get())
        self.assertIsNone(self.tokens.get_pending())
        self.assertEqual(self.auth.state, FlowState.IDLE)


class TestConfidentialCodeFlow(unittest.TestCase):
    def setUp(self):
        self.transport = RecordingTransport()
        self.tokens = TokenManager()
        self.auth = SpotifyCodeAuth(CONFIDENTIAL, token_manager=self.tokens, http_client=self.transport.client())

    def test_initiate_has_no_pkce_challenge(self):
        url = self.auth.initiate("user-read-private")
        params = query_of(url)
        self.assertNotIn("code_challenge", params)
        self.assertNotIn("code_challenge_method", params)
        self.assertIsNone(self.tokens.get_pending().code_verifier)
        self.assertEqual(params["state"], self.tokens.get_pending().state)

    def test_exchange_uses_basic_auth(self):
        self.transport.responses.append(httpx.Response(200, json={"access_token": "T1", "expires_in": 3600}))
        state = query_of(self.auth.initiate("user-read-private"))["state"]

        self.auth.complete({"code": "abc", "state": state})

        exchange = self.transport.requests[0]
        self.assertEqual(exchange.headers["Authorization"], _expected_basic("server-id", "s3cret"))
        self.assertEqual(
            form_of(exchange),
            {"grant_type": "authorization_code", "code": "abc", "redirect_uri": REDIRECT_URI},
        )
        self.assertEqual(self.tokens.get().access_token, "T1")

    def test_forged_callback_never_reaches_token_endpoint(self):
        self.auth.initiate("user-read-private")
        with self.assertRaises(CSRFInvalid):
            self.auth.complete({"code": "abc", "state": "forged"})
        self.assertEqual(self.transport.requests, [])

    def test_refresh_uses_basic_auth(self):
        self.tokens.set(TokenInfo("old", "Bearer", time.time(), refresh_token="R1"))
        self.transport.responses.append(
            httpx.Response(200, json={"access_token": "T2", "expires_in": 3600, "refresh_token": "R2"})
        )

        token = self.auth.refresh()
        request = self.transport.requests[0]
        self.assertEqual(request.headers["Authorization"], _expected_basic("server-id", "s3cret"))
        self.assertNotIn("client_id", form_of(request))
        self.assertEqual(token.refresh_token, "R2")


class TestClientCredentialsFlow(unittest.TestCase):
    def setUp(self):
        self.transport = RecordingTransport()
        self.tokens = TokenManager()
        self.auth = SpotifyClientCredentialsAuth(APP_ONLY, token_manager=self.tokens, http_client=self.transport.client())

    def test_authenticate(self):
        self.transport.responses.append(httpx.Response(200, json={"access_token": "APP", "expires_in": 3600}))
        started = time.time()

        token = self.auth.authenticate()

        request = self.transport.requests[0]
        self.assertEqual(request.headers["Authorization"], _expected_basic("app-id", "app-secret"))
        self.assertEqual(form_of(request), {"grant_type": "client_credentials"})
        self.assertEqual(token.access_token, "APP")
        self.assertIsNone(token.refresh_token)
        self.assertGreater(token.expires_at, started)
        self.assertEqual(self.auth.state, FlowState.COMPLETE)

    def test_server_error_carries_status_text(self):
        self.transport.responses.append(httpx.Response(500))

        with self.assertRaises(AuthError) as ctx:
            self.auth.authenticate()
        self.assertEqual(ctx.exception.detail, "Internal Server Error")
        self.assertIsNone(self.tokens.get())

    def test_response_without_access_token_is_auth_error(self):
        self.transport.responses.append(httpx.Response(200, json={"expires_in": 3600}))
        with self.assertRaises(AuthError):
            self.auth.authenticate()


class TestMalformedTokenResponses(unittest.TestCase):
    GARBAGE = b"\xff\xfe\xfa garbage"

    def setUp(self):
        self.transport = RecordingTransport()
        self.tokens = TokenManager()
        self.auth = SpotifyClientCredentialsAuth(APP_ONLY, token_manager=self.tokens, http_client=self.transport.client())

    def _assert_rejected(self, response):
        self.transport.responses.append(response)
        with self.assertRaises(AuthError) as ctx:
            self.auth.authenticate()
        self.assertIsNone(self.tokens.get())
        return ctx.exception

    def test_undecodable_client_error_body_uses_reason(self):
        err = self._assert_rejected(
            httpx.Response(400, content=self.GARBAGE, headers={"Content-Type": "application/json"})
        )
        self.assertEqual(err.detail, "Bad Request")

    def test_undecodable_success_body(self):
        self._assert_rejected(httpx.Response(200, content=self.GARBAGE, headers={"Content-Type": "application/json"}))

    def test_missing_expires_in(self):
        err = self._assert_rejected(httpx.Response(200, json={"access_token": "T"}))
        self.assertIn("expires_in", err.detail)

    def test_non_numeric_or_non_positive_expires_in(self):
        for expires_in in ("soon", None, 0, -5, True):
            with self.subTest(expires_in=expires_in):
                self._assert_rejected(httpx.Response(200, json={"access_token": "T", "expires_in": expires_in}))

    def test_numeric_string_expires_in_is_accepted(self):
        self.transport.responses.append(httpx.Response(200, json={"access_token": "T", "expires_in": "3600"}))
        token = self.auth.authenticate()
        self.assertFalse(token.is_expired(skew_seconds=0))


if __name__ == "__main__":
    unittest.main(verbosity=2)
