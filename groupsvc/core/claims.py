"""Bearer token claim extraction and realm resolution.

Signature, expiry and issuer are verified upstream (API gateway / Keycloak
itself on every Admin API call). This module only reads the payload.
"""
from __future__ import annotations
import hashlib

import jwt

from .errors import ClaimMissing, RealmNotFound, TokenMissing
from .models import Claims

BEARER_PREFIX = "Bearer "
REALM_MARKER = "/realms/"

ISSUER_CLAIM = "iss"
USERNAME_CLAIM = "preferred_username"


def extract_bearer_token(authorization_header: str | None) -> str:
    """Return the token carried by an ``Authorization: Bearer <token>`` header.

    Raises:
        TokenMissing: Header absent, not a Bearer scheme, or empty token
    """
    if not authorization_header:
        raise TokenMissing("Authorization header required", field="Authorization")
    if not authorization_header.startswith(BEARER_PREFIX):
        raise TokenMissing("Authorization header must use the Bearer scheme", field="Authorization")
    token = authorization_header[len(BEARER_PREFIX):].strip()
    if not token:
        raise TokenMissing("Bearer token is empty", field="Authorization")
    return token


def token_fingerprint(token: str) -> str:
    """Short SHA-256 prefix, safe to log in place of the token."""
    return hashlib.sha256(token.encode()).hexdigest()[:12]


def _decode_payload(token: str) -> dict:
    try:
        return jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError as exc:
        raise ClaimMissing(f"Malformed token: {exc}") from exc


def extract_claim(token: str, claim_name: str) -> str:
    """Read one string claim from the token payload.

    Raises:
        ClaimMissing: Malformed token, or claim absent, empty or not a string
    """
    value = _decode_payload(token).get(claim_name)
    if not isinstance(value, str) or not value:
        raise ClaimMissing(f"Claim '{claim_name}' missing from token", field=claim_name)
    return value


def extract_claims(token: str) -> Claims:
    """Extract issuer and preferred username.

    A missing issuer means the realm cannot be resolved and is reported as
    ``RealmNotFound``; a missing username as ``ClaimMissing``.
    """
    try:
        issuer = extract_claim(token, ISSUER_CLAIM)
    except ClaimMissing as exc:
        raise RealmNotFound(exc.detail, field=ISSUER_CLAIM) from exc
    username = extract_claim(token, USERNAME_CLAIM)
    return Claims(issuer=issuer, preferred_username=username)


def resolve_realm(issuer: str) -> str:
    """Derive the realm name from a Keycloak issuer URL.

    ``https://kc.example.com/realms/demo`` -> ``demo``. The segment right after
    the last ``/realms/`` marker is the realm; trailing slashes are ignored.

    Raises:
        RealmNotFound: No ``/realms/`` marker or nothing after it
    """
    _, marker, tail = (issuer or "").rpartition(REALM_MARKER)
    realm = tail.strip("/").split("/", 1)[0] if marker else ""
    if not realm:
        raise RealmNotFound(f"Issuer '{issuer}' does not name a realm", field=ISSUER_CLAIM)
    return realm
