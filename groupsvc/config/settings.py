"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import os
from dataclasses import dataclass, field
from pathlib import Path

AUTHZ_MODES = ("keycloak", "static")

DEMO_STATIC_GRANTS = "demo-admin=GroupCreate|GroupUpdate|admin;demo-dev=developer"


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback

    Returns:
        Secret value or None if not found
    """
    secret_file = Path("/run/secrets") / secret_name

    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                print(f"[settings] ✓ Loaded {secret_name} from /run/secrets")
                return secret_value
        except OSError as e:
            print(f"[settings] ✗ Failed to read /run/secrets/{secret_name}: {e}")

    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            return secret_value

    return None


def parse_static_grants(raw: str) -> dict[str, list[str]]:
    """Parse ``user=cap1|cap2;user2=cap3`` into a grants mapping."""
    grants: dict[str, list[str]] = {}
    for entry in raw.split(";"):
        user, sep, capabilities = entry.partition("=")
        user = user.strip()
        if not sep or not user:
            continue
        grants[user] = [cap.strip() for cap in capabilities.split("|") if cap.strip()]
    return grants


@dataclass
class AppConfig:
    """Application configuration container."""
    demo_mode: bool

    # Keycloak
    keycloak_url: str = ""
    request_timeout: float = 5.0

    # Authorization collaborator
    authz_mode: str = "keycloak"
    authz_realm: str = "demo"
    keycloak_service_realm: str = "demo"
    keycloak_service_client_id: str = "automation-cli"
    keycloak_service_client_secret: str = ""
    static_grants: dict[str, list[str]] = field(default_factory=dict)

    # Request handling
    member_count_workers: int = 1
    json_max_size_bytes: int = 65536
    log_level: str = "INFO"


def _get_or_generate(var_name: str, demo_default: str | None = None, required: bool = True, demo_mode: bool = False) -> str:
    """Get environment variable or use demo default."""
    value = os.environ.get(var_name)
    if value:
        return value

    if demo_mode and demo_default is not None:
        print(f"[demo-mode] Using default for {var_name}")
        return demo_default

    if not required:
        return ""

    raise RuntimeError(f"Environment variable {var_name} is required in production mode.")


def _int_env(var_name: str, default: int, minimum: int = 1) -> int:
    raw = os.environ.get(var_name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise RuntimeError(f"Environment variable {var_name} must be an integer, got '{raw}'")
    if value < minimum:
        raise RuntimeError(f"Environment variable {var_name} must be >= {minimum}")
    return value


def load_settings() -> AppConfig:
    """Load application settings from environment and /run/secrets."""
    demo_mode = os.environ.get("DEMO_MODE", "false").lower() == "true"

    keycloak_url = _get_or_generate(
        "KEYCLOAK_URL",
        demo_default="http://127.0.0.1:8080",
        demo_mode=demo_mode,
    ).rstrip("/")
    request_timeout = float(os.environ.get("KEYCLOAK_REQUEST_TIMEOUT", "5"))

    authz_mode = os.environ.get("AUTHZ_MODE", "static" if demo_mode else "keycloak").strip().lower()
    if authz_mode not in AUTHZ_MODES:
        raise RuntimeError(f"AUTHZ_MODE must be one of {', '.join(AUTHZ_MODES)}, got '{authz_mode}'")

    authz_realm = os.environ.get("AUTHZ_REALM", "demo")
    keycloak_service_realm = os.environ.get("KEYCLOAK_SERVICE_REALM", authz_realm)
    keycloak_service_client_id = os.environ.get("KEYCLOAK_SERVICE_CLIENT_ID", "automation-cli")

    keycloak_service_client_secret = _load_secret_from_file(
        "keycloak_service_client_secret",
        "KEYCLOAK_SERVICE_CLIENT_SECRET",
    ) or ""
    if not keycloak_service_client_secret and authz_mode == "keycloak":
        if demo_mode:
            keycloak_service_client_secret = "demo-service-secret"
            print("[demo-mode] Using demo KEYCLOAK_SERVICE_CLIENT_SECRET")
        else:
            raise RuntimeError(
                "KEYCLOAK_SERVICE_CLIENT_SECRET not found in /run/secrets or environment "
                "(required when AUTHZ_MODE=keycloak)."
            )

    raw_grants = os.environ.get("AUTHZ_STATIC_GRANTS", DEMO_STATIC_GRANTS if demo_mode else "")
    static_grants = parse_static_grants(raw_grants)

    member_count_workers = _int_env("MEMBER_COUNT_WORKERS", 1)
    json_max_size_bytes = _int_env("JSON_MAX_SIZE_BYTES", 65536)
    log_level = os.environ.get("LOG_LEVEL", "INFO").strip().upper()

    mode_label = "DEMO" if demo_mode else "PRODUCTION"
    print(f"[settings] Mode={mode_label}; keycloak={keycloak_url}; authz={authz_mode}")

    if demo_mode:
        print("[settings] WARNING: Demo credentials in use. Do not deploy with these defaults.")

    return AppConfig(
        demo_mode=demo_mode,
        keycloak_url=keycloak_url,
        request_timeout=request_timeout,
        authz_mode=authz_mode,
        authz_realm=authz_realm,
        keycloak_service_realm=keycloak_service_realm,
        keycloak_service_client_id=keycloak_service_client_id,
        keycloak_service_client_secret=keycloak_service_client_secret,
        static_grants=static_grants,
        member_count_workers=member_count_workers,
        json_max_size_bytes=json_max_size_bytes,
        log_level=log_level,
    )
