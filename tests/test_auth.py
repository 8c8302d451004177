import pytest

from preservation_e2e.auth import ACTIVITY_API_HEADER, ActivityTotpAuth, AuthTokenProvider, NoAuth, build_auth
from preservation_e2e.exceptions import AuthenticationError, ConfigurationError


class FakeConfidentialClient:
    def __init__(self, *results):
        self.results = list(results)
        self.requests = []

    def acquire_token_for_client(self, scopes):
        self.requests.append(scopes)
        return self.results.pop(0)


class Clock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def provider(app, clock=None, **kwargs):
    return AuthTokenProvider("client-id", "client-secret", "tenant", app=app, clock=clock or Clock(), **kwargs)


def test_token_is_cached_until_refresh_margin():
    clock = Clock()
    app = FakeConfidentialClient(
        {"access_token": "first", "expires_in": 3600},
        {"access_token": "second", "expires_in": 3600},
    )
    auth = provider(app, clock)

    assert auth.get_token() == "first"
    clock.now += 3600 - 301
    assert auth.get_token() == "first"
    assert len(app.requests) == 1

    clock.now += 2
    assert auth.get_token() == "second"
    assert len(app.requests) == 2


def test_default_scope_derived_from_client_id():
    app = FakeConfidentialClient({"access_token": "t", "expires_in": 60})
    provider(app).get_token()
    assert app.requests == [["api://client-id/.default"]]


def test_explicit_scope_used():
    app = FakeConfidentialClient({"access_token": "t", "expires_in": 60})
    provider(app, scope="api://preservation/.default").get_token()
    assert app.requests == [["api://preservation/.default"]]


def test_headers_include_client_identity():
    app = FakeConfidentialClient({"access_token": "abc", "expires_in": 3600})
    headers = provider(app, client_identity="Load-tests").get_auth_headers()
    assert headers["Authorization"] == "Bearer abc"
    assert headers["X-Client-Identity"] == "Load-tests"


def test_invalidate_forces_new_token():
    app = FakeConfidentialClient(
        {"access_token": "first", "expires_in": 3600},
        {"access_token": "second", "expires_in": 3600},
    )
    auth = provider(app)
    auth.get_token()
    auth.invalidate()
    assert auth.get_token() == "second"


def test_failed_exchange_raises_with_provider_error():
    app = FakeConfidentialClient({"error": "invalid_client", "error_description": "AADSTS7000215: Invalid secret"})
    with pytest.raises(AuthenticationError) as excinfo:
        provider(app).get_token()
    assert excinfo.value.error == "invalid_client"
    assert "AADSTS7000215" in str(excinfo.value)
    assert "client-secret" not in str(excinfo.value)


def test_missing_credentials_rejected():
    with pytest.raises(ConfigurationError):
        AuthTokenProvider("client-id", "", "tenant")


def test_localhost_api_needs_no_token(settings):
    local = settings.model_copy(update={"preservation_api_endpoint": "http://localhost:5000", "api_client_id": None})
    auth = build_auth(local)
    assert isinstance(auth, NoAuth)
    assert auth.get_auth_headers() == {}


def test_remote_api_gets_token_provider(settings):
    auth = build_auth(settings)
    assert isinstance(auth, AuthTokenProvider)
    assert auth.authority == "https://login.microsoftonline.com/tenant"
    assert auth.scope == "api://preservation/.default"


RFC_6238_SECRET = "12345678901234567890"


@pytest.mark.parametrize("timestamp, code", [
    # RFC 6238 SHA-1 vectors, timestamps scaled from a 30s to a 300s step
    (590, "94287082"),
    (11111111090, "07081804"),
    (12345678900, "89005924"),
])
def test_activity_code_matches_reference_vectors(timestamp, code):
    assert ActivityTotpAuth(RFC_6238_SECRET, clock=lambda: timestamp).current_code() == code


def test_activity_code_is_stable_within_its_window():
    clock = Clock(now=3000.0)
    auth = ActivityTotpAuth(RFC_6238_SECRET, clock=clock)
    first = auth.current_code()
    clock.now = 3299.0
    assert auth.current_code() == first
    clock.now = 3300.0
    assert auth.current_code() != first


def test_activity_headers(settings):
    auth = ActivityTotpAuth.from_settings(settings.model_copy(update={"totp_secret": RFC_6238_SECRET}))
    headers = auth.get_auth_headers()
    assert set(headers) == {ACTIVITY_API_HEADER, "Accept"}
    assert len(headers[ACTIVITY_API_HEADER]) == 8
    assert "Authorization" not in headers


def test_activity_auth_needs_a_secret(settings):
    with pytest.raises(ConfigurationError):
        ActivityTotpAuth.from_settings(settings)
