"""
Preservation E2E - Configuration Loader

Loads environment variables with support for:
- Base .env file (common settings)
- Environment-specific files (.env.dev, .env.uat, .env.ci)
- APP_ENV variable to control which environment to load
"""

import os
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from dotenv import load_dotenv
from pydantic import BaseModel

from preservation_e2e.exceptions import ConfigurationError
from preservation_e2e.polling import PollPolicy


def load_environment(project_root: Optional[Path] = None) -> str:
    """
    Load environment variables from .env files.

    Loading order (later overrides earlier):
    1. .env (base configuration)
    2. .env.{APP_ENV} (environment-specific overrides)
    3. System environment variables (always highest priority for the base file)

    The files are looked up in project_root, by default the working directory.
    """
    if project_root is None:
        project_root = Path.cwd()

    env = os.environ.get("APP_ENV", "local")

    base_env = project_root / ".env"
    if base_env.exists():
        load_dotenv(base_env, override=False)

    env_file = project_root / f".env.{env}"
    if env_file.exists():
        load_dotenv(env_file, override=True)

    os.environ.setdefault("APP_ENV", env)

    return env


def get_env(key: str, default=None, required: bool = False):
    """
    Get environment variable with optional default and required check.

    Raises:
        ConfigurationError: If required=True and variable is not set
    """
    value = os.getenv(key, default)
    if required and value in (None, ""):
        raise ConfigurationError(f"Required environment variable '{key}' is not set")
    return value


def get_bool_env(key: str, default: bool = False) -> bool:
    """
    Get boolean environment variable.

    Values considered True: 'true', '1', 'yes', 'on'
    Values considered False: 'false', '0', 'no', 'off'
    Unset or unrecognised values fall back to the default.
    """
    value = os.getenv(key, "").strip().lower()
    if value in ("true", "1", "yes", "on"):
        return True
    if value in ("false", "0", "no", "off"):
        return False
    return default


def get_int_env(key: str, default: int) -> int:
    value = os.getenv(key, "").strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"Environment variable '{key}' must be an integer, got {value!r}")


def get_float_env(key: str, default: float) -> float:
    value = os.getenv(key, "").strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"Environment variable '{key}' must be a number, got {value!r}")


def get_list_env(key: str, default=None, separator: str = ",") -> list:
    """Get list from comma-separated environment variable."""
    value = os.getenv(key, "")
    if not value:
        return default or []
    return [item.strip() for item in value.split(separator) if item.strip()]


def is_localhost(url: Optional[str]) -> bool:
    """True when the URL points at a developer machine rather than a deployed API."""
    if not url:
        return False
    hostname = urlparse(url).hostname or ""
    return hostname in ("localhost", "127.0.0.1", "::1")


class Settings(BaseModel):
    """Static configuration for one harness run."""

    app_env: str = "local"
    environment_name: str = "local"

    # Endpoints
    preservation_api_endpoint: Optional[str] = None
    frontend_base_url: Optional[str] = None
    storage_api_endpoint: Optional[str] = None
    totp_secret: Optional[str] = None

    # Client credentials for direct API calls
    api_client_id: Optional[str] = None
    api_client_secret: Optional[str] = None
    api_tenant_id: Optional[str] = None
    api_scope: Optional[str] = None
    client_identity: str = "Playwright-tests"

    # Frontend login
    frontend_username: Optional[str] = None
    frontend_password: Optional[str] = None

    # Object storage
    aws_profile: Optional[str] = "leeds"
    aws_region: str = "eu-west-1"
    s3_endpoint_url: Optional[str] = None

    # Test data and load testing
    test_data_dir: str = "test-data"
    files_source_dir: Optional[str] = None
    source_deposit: Optional[str] = None
    load_folder_depth: int = 2
    load_folder_breadth: int = 2

    # Timing
    poll_interval: float = 2.0
    poll_timeout: float = 60.0
    scenario_timeout: float = 300.0
    ui_timeout_ms: int = 10000

    # Expected values in the system under test
    created_by_agent: str = "/agents/dlipdev"
    leeds_domain: Optional[str] = None

    # Reporting
    slack_token: Optional[str] = None
    slack_channel: Optional[str] = None
    report_url: Optional[str] = None

    # Artifacts
    results_dir: str = "test_results"
    session_file: str = ".auth/frontend.json"

    @classmethod
    def from_env(cls, load: bool = True) -> "Settings":
        """Build settings from the (optionally freshly loaded) process environment."""
        env = load_environment() if load else os.environ.get("APP_ENV", "local")
        return cls(
            app_env=env,
            environment_name=get_env("PLAYWRIGHT_ENVIRONMENT", env),
            preservation_api_endpoint=get_env("PRESERVATION_API_ENDPOINT"),
            frontend_base_url=get_env("FRONTEND_BASE_URL"),
            storage_api_endpoint=get_env("STORAGE_API_ENDPOINT"),
            totp_secret=get_env("TOTP_SECRET"),
            api_client_id=get_env("API_CLIENT_ID"),
            api_client_secret=get_env("API_CLIENT_SECRET"),
            api_tenant_id=get_env("API_TENANT_ID"),
            api_scope=get_env("API_SCOPE"),
            client_identity=get_env("CLIENT_IDENTITY", "Playwright-tests"),
            frontend_username=get_env("FRONTEND_USERNAME"),
            frontend_password=get_env("FRONTEND_PASSWORD"),
            aws_profile=get_env("AWS_PROFILE", "leeds") or None,
            aws_region=get_env("AWS_REGION", "eu-west-1"),
            s3_endpoint_url=get_env("S3_ENDPOINT_URL"),
            test_data_dir=get_env("TEST_DATA_DIR", "test-data"),
            files_source_dir=get_env("FILES_SOURCE_DIR"),
            source_deposit=get_env("SOURCE_DEPOSIT"),
            load_folder_depth=get_int_env("LOAD_FOLDER_DEPTH", 2),
            load_folder_breadth=get_int_env("LOAD_FOLDER_BREADTH", 2),
            poll_interval=get_float_env("POLL_INTERVAL_SECONDS", 2.0),
            poll_timeout=get_float_env("POLL_TIMEOUT_SECONDS", 60.0),
            scenario_timeout=get_float_env("SCENARIO_TIMEOUT_SECONDS", 300.0),
            ui_timeout_ms=get_int_env("UI_TIMEOUT_MS", 10000),
            created_by_agent=get_env("CREATED_BY_AGENT", "/agents/dlipdev"),
            leeds_domain=get_env("LEEDS_DOMAIN"),
            slack_token=get_env("SLACK_TOKEN"),
            slack_channel=get_env("SLACK_CHANNEL"),
            report_url=get_env("REPORT_URL", get_env("GITHUB_REPORT_OUTPUT")),
            results_dir=get_env("RESULTS_DIR", "test_results"),
            session_file=get_env("SESSION_FILE", ".auth/frontend.json"),
        )

    def require(self, *names: str) -> None:
        """Fail fast when settings a suite depends on are missing."""
        missing = [name for name in names if getattr(self, name) in (None, "")]
        if missing:
            env_names = ", ".join(name.upper() for name in missing)
            raise ConfigurationError(f"Missing required settings: {env_names}")

    @property
    def api_is_local(self) -> bool:
        return is_localhost(self.preservation_api_endpoint)

    def default_poll_policy(self) -> PollPolicy:
        return PollPolicy(interval=self.poll_interval, timeout=self.poll_timeout)
