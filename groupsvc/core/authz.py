"""Capability-based authorization.

``Authorizer.authorize`` is fail-closed: a collaborator error is a denial.
Two collaborators are provided:

- ``KeycloakRoleAuthorizer``: capabilities are realm roles of the same name in
  the authorization realm, read through a service account.
- ``StaticAuthorizer``: fixed user -> capabilities grants from configuration
  (demo mode, tests).
"""
from __future__ import annotations
import logging
import threading
from abc import ABC, abstractmethod
from typing import Iterable, Mapping, Optional

from .keycloak import KeycloakClient, UserService
from .models import AuthorizationRequest

logger = logging.getLogger(__name__)


class Authorizer(ABC):
    """Base class; subclasses implement ``check``."""

    def authorize(self, user: str, capabilities: Iterable[str]) -> bool:
        """Return True when ``user`` holds at least one of ``capabilities``."""
        request = AuthorizationRequest(user=user, capabilities_needed=tuple(capabilities))
        if not request.user or not request.capabilities_needed:
            return False
        try:
            allowed = self.check(request)
        except Exception as exc:  # fail closed
            logger.warning("Authorization check failed for user %s: %s", user, exc)
            return False
        return allowed is True

    @abstractmethod
    def check(self, request: AuthorizationRequest) -> bool:
        """Decide one request; may raise, which ``authorize`` treats as a denial."""


class StaticAuthorizer(Authorizer):
    """Grants taken from configuration, e.g. ``{"alice": {"GroupCreate"}}``."""

    def __init__(self, grants: Mapping[str, Iterable[str]]):
        self.grants = {user: frozenset(capabilities) for user, capabilities in grants.items()}

    def check(self, request: AuthorizationRequest) -> bool:
        held = self.grants.get(request.user, frozenset())
        return any(capability in held for capability in request.capabilities_needed)


class KeycloakRoleAuthorizer(Authorizer):
    """Looks up the user's effective realm roles with a service account."""

    def __init__(
        self,
        client: KeycloakClient,
        realm: str,
        service_realm: Optional[str] = None,
        client_id: str = "automation-cli",
        client_secret: str = "",
    ):
        self.client = client
        self.realm = realm
        self.service_realm = service_realm or realm
        self.client_id = client_id
        self.client_secret = client_secret
        self.users = UserService(client)
        self._auth_lock = threading.Lock()

    def check(self, request: AuthorizationRequest) -> bool:
        # Authenticate lazily so the app boots without reaching Keycloak
        if not self.client.is_authenticated:
            with self._auth_lock:
                if not self.client.is_authenticated:
                    self.client.authenticate_service_account(self.service_realm, self.client_id, self.client_secret)
        roles = self.users.get_effective_realm_roles(self.realm, request.user)
        return any(capability in roles for capability in request.capabilities_needed)
