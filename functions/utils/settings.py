"""
functions/utils/settings.py

WHAT THIS FILE IS FOR
---------------------
This module defines the *single source of truth* for runtime configuration
of the Status Board API.

It is responsible for:
- Defining all supported configuration fields (via Pydantic BaseSettings)
- Loading default values from parameters/parameters.yaml
- Overriding defaults with environment variables (STATUSBOARD_*)
- Exposing a cached, fully-validated Settings object to the application

LOAD & PRECEDENCE MODEL
-----------------------
Configuration is loaded in the following order (last wins):

1) YAML defaults from:
       parameters/parameters.yaml
2) Environment variables:
       STATUSBOARD_*

Credentials (Vercel / GitHub / Supabase / Firebase tokens, admin password)
are expected to come from the environment only. The YAML file holds
non-secret defaults such as health check targets and timeouts.

MISSING CREDENTIALS
-------------------
No credential is required at startup. Every integration is optional:
- read endpoints degrade to `unknown` / empty data when a token is absent
- write endpoints answer 500 when the integration they need is absent

That rule is enforced by the clients and handlers, not here.

DESIGN INTENT
-------------
- All runtime-configurable behavior MUST be declared here
- The Settings object is built once per process (get_settings) and passed
  explicitly into every client constructor, so tests can hand clients a
  fake settings object instead of touching the environment.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Dict, List, Optional

import structlog
import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

logger = structlog.get_logger(__name__)

PARAMETERS_PATH = Path(__file__).resolve().parents[2] / "parameters" / "parameters.yaml"


class HealthCheckTarget(BaseModel):
    url: str
    name: Optional[str] = None


class Settings(BaseSettings):
    """
    Runtime settings for the Status Board API.

    Load order / precedence:
        1) YAML defaults (parameters/parameters.yaml)
        2) Environment variables (STATUSBOARD_*), overriding YAML
    """

    model_config = SettingsConfigDict(
        env_prefix="STATUSBOARD_",
        extra="ignore",
    )

    # Service metadata
    service_name: str = "statusboard_api"
    environment: str = "local"
    log_level: str = "INFO"

    # Hosting platform (Vercel)
    vercel_token: Optional[str] = None
    vercel_team_id: Optional[str] = None
    vercel_api_base_url: str = "https://api.vercel.com"

    # CI platform (GitHub Actions)
    github_token: Optional[str] = None
    github_api_base_url: str = "https://api.github.com"

    # Database platform (Supabase PostgREST)
    supabase_url: Optional[str] = None
    supabase_service_role_key: Optional[str] = None
    supabase_anon_key: Optional[str] = None

    # Push gateway (Firebase Cloud Messaging)
    firebase_project_id: Optional[str] = None
    firebase_client_email: Optional[str] = None
    firebase_private_key: Optional[str] = None
    push_topic: str = "devops-dashboard-users"
    push_icon: str = "/icon-192.png"

    # Shared admin secret for the dashboard cookie
    admin_password: Optional[str] = None

    # Hosting projects hidden from the dashboard (matched case-insensitively by name)
    excluded_projects: Annotated[List[str], NoDecode] = Field(default_factory=list)

    # Explicit probe targets; when empty, targets are discovered from hosting projects
    health_check_targets: List[HealthCheckTarget] = Field(default_factory=list)

    # Networking
    # - http_timeout_seconds: upstream API calls (None = no timeout)
    # - health_probe_timeout_seconds: total bound for a single HEAD probe
    http_timeout_seconds: Optional[float] = None
    health_probe_timeout_seconds: float = 10.0

    # CORS for the dashboard front-end
    cors_allow_origins: List[str] = Field(default_factory=lambda: ["*"])

    # Dashboard poller
    poll_interval_seconds: float = 30.0

    @field_validator("excluded_projects", mode="before")
    @classmethod
    def _split_excluded(cls, value: Any) -> Any:
        # env var form: "proj-a, proj-b"
        if isinstance(value, str):
            return [p.strip() for p in value.split(",") if p.strip()]
        return value

    @field_validator("firebase_private_key", mode="before")
    @classmethod
    def _unescape_private_key(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.replace("\\n", "\n")
        return value

    @property
    def excluded_project_names(self) -> set[str]:
        return {p.strip().lower() for p in self.excluded_projects if p and p.strip()}

    @property
    def supabase_key(self) -> Optional[str]:
        return self.supabase_service_role_key or self.supabase_anon_key


@lru_cache(maxsize=1)
def _load_yaml_parameters() -> Dict[str, Any]:
    """
    Load base configuration from parameters/parameters.yaml.

    Cached so the process sees one consistent set of defaults.
    """
    if not PARAMETERS_PATH.exists():
        logger.warning("parameters_yaml_missing", expected=str(PARAMETERS_PATH))
        return {}

    try:
        with PARAMETERS_PATH.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            logger.warning(
                "parameters_yaml_not_dict",
                path=str(PARAMETERS_PATH),
                type=type(data).__name__,
            )
            return {}
        logger.info("parameters_yaml_loaded", path=str(PARAMETERS_PATH))
        return data
    except Exception as exc:  # noqa: BLE001
        logger.error("parameters_yaml_load_error", path=str(PARAMETERS_PATH), error=str(exc))
        return {}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Construct and return the final validated Settings object.

    This function is cached (singleton per process) and is the ONLY
    supported way to access runtime settings outside of tests.
    """
    # 1) YAML defaults
    yaml_data = _load_yaml_parameters()

    # 2) env overrides (partial)
    try:
        env_settings = Settings()
        env_data = env_settings.model_dump(exclude_unset=True)
        logger.info("settings_loaded_env_only_partial", fields=sorted(env_data.keys()))
    except ValidationError as exc:
        logger.warning("settings_env_validation_error", errors=exc.errors())
        env_data = {}

    # 3) merge + final validation
    merged: Dict[str, Any] = {**yaml_data, **env_data}
    settings = Settings.model_validate(merged)

    # never log secret values, only whether they are present
    logger.info(
        "settings_loaded",
        environment=settings.environment,
        service_name=settings.service_name,
        vercel_configured=bool(settings.vercel_token),
        github_configured=bool(settings.github_token),
        supabase_configured=bool(settings.supabase_url and settings.supabase_key),
        firebase_configured=bool(settings.firebase_private_key),
        admin_password_configured=bool(settings.admin_password),
        excluded_projects=sorted(settings.excluded_project_names),
        health_check_targets=len(settings.health_check_targets),
        http_timeout_seconds=settings.http_timeout_seconds,
        health_probe_timeout_seconds=settings.health_probe_timeout_seconds,
    )

    return settings
