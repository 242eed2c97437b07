"""Pytest shared fixtures for group service tests."""
import json
import os
import pathlib
import sys
import time
from typing import Optional
from unittest.mock import MagicMock

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Configure test environment BEFORE any app imports
os.environ.setdefault("DEMO_MODE", "true")

import jwt
import pytest
import requests
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives import serialization

from groupsvc.config import AppConfig
from groupsvc.core.authz import Authorizer, StaticAuthorizer
from groupsvc.core.group_operations import GroupOperations
from groupsvc.core.keycloak import GroupService
from groupsvc.flask_app import create_app


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
class StubResponse:
    """Minimal stand-in for ``requests.Response``."""

    def __init__(self, payload=None, status_code: int = 200, headers: Optional[dict] = None, url: str = ""):
        self._payload = payload
        self.status_code = status_code
        self.headers = headers or {}
        self.url = url
        self.text = json.dumps(payload) if payload is not None else ""

    def json(self):
        return self._payload


@pytest.fixture(autouse=True)
def _guard_network(monkeypatch, request):
    """
    Prevent unit tests from hitting a live Keycloak.

    Integration tests are explicitly marked with @pytest.mark.integration and
    are allowed to perform real HTTP calls by skipping this fixture.
    """
    if request.node.get_closest_marker("integration"):
        return

    def _stub_post(url, *args, **kwargs):
        if url.endswith("/protocol/openid-connect/token"):
            return StubResponse({"access_token": "service-token", "expires_in": 300}, url=url)
        raise RuntimeError(f"Unexpected HTTP POST in unit test: {url}")

    def _stub_get(url, *args, **kwargs):
        raise RuntimeError(f"Unexpected HTTP GET in unit test: {url}")

    def _stub_put(url, *args, **kwargs):
        raise RuntimeError(f"Unexpected HTTP PUT in unit test: {url}")

    monkeypatch.setattr(requests, "post", _stub_post)
    monkeypatch.setattr(requests, "get", _stub_get)
    monkeypatch.setattr(requests, "put", _stub_put)


# ─────────────────────────────────────────────────────────────────────────────
# RSA Key Pair for JWT Testing
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(scope="session")
def rsa_key_pair():
    """Generate RSA key pair for JWT signing in tests."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)

    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    )

    public_key = private_key.public_key()
    public_pem = public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo
    )

    return {
        "private_key": private_key,
        "private_pem": private_pem,
        "public_key": public_key,
        "public_pem": public_pem,
    }


# ─────────────────────────────────────────────────────────────────────────────
# JWT Token Helpers
# ─────────────────────────────────────────────────────────────────────────────
def create_jwt(
    rsa_key_pair: dict,
    issuer: Optional[str] = "https://localhost/realms/demo",
    username: Optional[str] = "alice",
    exp_offset: int = 3600,
    kid: str = "default-key-id",
    **extra_claims,
) -> str:
    """Create an RS256-signed JWT; pass ``None`` to leave a claim out."""
    now = int(time.time())
    payload = {
        "sub": "user-123",
        "exp": now + exp_offset,
        "iat": now,
        **extra_claims,
    }
    if issuer is not None:
        payload["iss"] = issuer
    if username is not None:
        payload["preferred_username"] = username

    return jwt.encode(payload, rsa_key_pair["private_key"], algorithm="RS256", headers={"kid": kid})


def bearer(token: str) -> str:
    return f"Bearer {token}"


@pytest.fixture()
def make_auth_header(rsa_key_pair):
    """Factory for ``Authorization`` header values, e.g. ``make_auth_header(username="bob")``."""

    def _make(**claims) -> str:
        return bearer(create_jwt(rsa_key_pair, **claims))

    return _make


# ─────────────────────────────────────────────────────────────────────────────
# Collaborator Stubs
# ─────────────────────────────────────────────────────────────────────────────
class ToggleAuthorizer(Authorizer):
    """Authorizer whose decision is flipped by the test; records every request."""

    def __init__(self, allowed: bool = True):
        self.allowed = allowed
        self.requests = []

    def check(self, request):
        self.requests.append(request)
        return self.allowed


@pytest.fixture()
def provider():
    """Directory provider stub with an empty realm by default."""
    stub = MagicMock(spec=GroupService)
    stub.get_groups.return_value = []
    stub.get_group_by_path.return_value = None
    stub.get_group_members.return_value = []
    stub.create_group.return_value = "new-group-id"
    return stub


@pytest.fixture()
def authorizer():
    return ToggleAuthorizer(allowed=True)


@pytest.fixture()
def operations(provider, authorizer):
    return GroupOperations(provider=provider, authorizer=authorizer)


@pytest.fixture()
def auth_header(make_auth_header):
    return make_auth_header()


# ─────────────────────────────────────────────────────────────────────────────
# Flask Test Client
# ─────────────────────────────────────────────────────────────────────────────
def make_config(**overrides) -> AppConfig:
    base = dict(
        demo_mode=True,
        keycloak_url="http://keycloak.test:8080",
        authz_mode="static",
        static_grants={
            "alice": ["GroupCreate", "GroupUpdate", "developer"],
            "bob": ["developer"],
        },
    )
    base.update(overrides)
    return AppConfig(**base)


@pytest.fixture()
def app(provider):
    """Flask app wired to the provider stub and static grants."""
    cfg = make_config()
    flask_app = create_app(
        cfg,
        operations=GroupOperations(provider=provider, authorizer=StaticAuthorizer(cfg.static_grants)),
    )
    flask_app.config.update(TESTING=True)
    return flask_app


@pytest.fixture()
def client(app):
    with app.test_client() as client:
        yield client


# ─────────────────────────────────────────────────────────────────────────────
# Pytest Configuration
# ─────────────────────────────────────────────────────────────────────────────
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (requires running Keycloak)"
    )
    config.addinivalue_line(
        "markers", "critical: marks tests as critical security tests (P0 priority)"
    )
