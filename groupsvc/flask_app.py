"""Flask application factory and bootstrap.

This module provides the create_app() factory function for initializing
the Flask application with all blueprints, middleware, and configuration.
"""
from __future__ import annotations
import logging
from typing import Optional

from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix

from groupsvc.config import AppConfig, load_settings
from groupsvc.core.authz import Authorizer, KeycloakRoleAuthorizer, StaticAuthorizer
from groupsvc.core.capabilities import OPERATION_CAPABILITIES, validate_operation_capabilities
from groupsvc.core.group_operations import GroupOperations
from groupsvc.core.keycloak import GroupService, KeycloakClient


# ─────────────────────────────────────────────────────────────────────────────
# Composition
# ─────────────────────────────────────────────────────────────────────────────
def build_authorizer(cfg: AppConfig) -> Authorizer:
    """Build the authorization collaborator selected by AUTHZ_MODE."""
    if cfg.authz_mode == "static":
        return StaticAuthorizer(cfg.static_grants)
    return KeycloakRoleAuthorizer(
        KeycloakClient(cfg.keycloak_url, timeout=cfg.request_timeout),
        realm=cfg.authz_realm,
        service_realm=cfg.keycloak_service_realm,
        client_id=cfg.keycloak_service_client_id,
        client_secret=cfg.keycloak_service_client_secret,
    )


def build_group_operations(cfg: AppConfig) -> GroupOperations:
    """Wire group operations to Keycloak and the configured authorizer."""
    return GroupOperations(
        provider=GroupService(cfg.keycloak_url, timeout=cfg.request_timeout),
        authorizer=build_authorizer(cfg),
        capabilities=validate_operation_capabilities(OPERATION_CAPABILITIES),
        member_count_workers=cfg.member_count_workers,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Application Factory
# ─────────────────────────────────────────────────────────────────────────────
def create_app(cfg: Optional[AppConfig] = None, operations: Optional[GroupOperations] = None) -> Flask:
    """Create and configure Flask application.

    Args:
        cfg: Settings (loaded from the environment when omitted)
        operations: Pre-built operations, e.g. with stub collaborators in tests
    """
    cfg = cfg or load_settings()

    logging.getLogger("groupsvc").setLevel(cfg.log_level)

    # Fail the boot on an unknown capability name
    validate_operation_capabilities(OPERATION_CAPABILITIES)

    app = Flask(__name__)
    app.config["APP_CONFIG"] = cfg
    app.config["MAX_CONTENT_LENGTH"] = cfg.json_max_size_bytes
    app.json.sort_keys = False

    # Trust X-Forwarded-* headers from proxy (nginx)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)  # type: ignore

    app.extensions["group_operations"] = operations or build_group_operations(cfg)

    # Register blueprints
    from groupsvc.api import health, errors, groups

    app.register_blueprint(health.bp)
    app.register_blueprint(groups.bp)

    # Register error handlers
    errors.register_error_handlers(app)

    mode_label = "DEMO" if cfg.demo_mode else "PRODUCTION"
    print(f"[flask_app] Mode={mode_label}")
    print("[flask_app] Group API registered at /group and /groups")

    if cfg.demo_mode:
        print("[flask_app] WARNING: Demo mode active - static authorization grants in use")

    return app
