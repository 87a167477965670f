"""Application configuration using pydantic-settings.

Secrets and the project map come from environment variables (or a .env file).
Malformed configuration stops the application at startup; missing
credentials are reported per request as a ConfigError.
"""

from functools import lru_cache

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from sheets_api.credentials import SPREADSHEETS_SCOPE, ServiceAccountCredential
from sheets_api.exceptions import ConfigError
from sheets_api.token_minter import TOKEN_URI


class ProjectConfig(BaseModel):
    """One project: a spreadsheet and its named ranges (list name -> range)."""

    model_config = ConfigDict(populate_by_name=True)

    sheet_id: str = Field(alias="sheetId")
    ranges: dict[str, str] = Field(default_factory=dict)


_projects_adapter = TypeAdapter(dict[str, ProjectConfig])


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Credential environment variables (one of):
    - SA_EMAIL + SA_PRIVATE_KEY: service account email and PEM key
    - SERVICE_ACCOUNT_FILE: path to a service account JSON key

    Project map:
    - PROJECTS_CONFIG: JSON, e.g.
      {"myproject": {"sheetId": "...", "ranges": {"contacts": "Contacts!A:Z"}}}
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server
    port: int = 8000
    environment: str = "development"
    log_level: str = "INFO"

    # Comma-separated list of origins, or "*"
    allowed_origins: str = "*"

    # Service account
    sa_email: str = ""
    sa_private_key: str = ""
    sa_scopes: str = SPREADSHEETS_SCOPE
    service_account_file: str = ""

    projects_config: str = "{}"

    # Google endpoints
    token_uri: str = TOKEN_URI
    sheets_api_base: str = "https://sheets.googleapis.com/v4/spreadsheets"
    request_timeout: int = 60

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    def get_allowed_origins(self) -> list[str]:
        """Get list of origins allowed by CORS."""
        origins = [o.strip() for o in self.allowed_origins.split(",") if o.strip()]
        return origins or ["*"]

    def get_scopes(self) -> list[str]:
        """Scopes may be separated by commas or whitespace."""
        return [s for s in self.sa_scopes.replace(",", " ").split() if s]

    def get_projects(self) -> dict[str, ProjectConfig]:
        """Parse the project map."""
        return _projects_adapter.validate_json(self.projects_config)

    def resolve_sheet_config(self, project_id: str, list_name: str) -> tuple[str, str]:
        """Resolve a (project, list) pair to (spreadsheet_id, range).

        Raises:
            ConfigError: unknown_project or unknown_list
        """
        project = self.get_projects().get(project_id)
        if project is None:
            raise ConfigError("unknown_project", f'Project "{project_id}" not found')

        range_spec = project.ranges.get(list_name)
        if not range_spec:
            raise ConfigError(
                "unknown_list", f'List "{list_name}" not found in project "{project_id}"'
            )
        return project.sheet_id, range_spec

    def get_credential(self) -> ServiceAccountCredential:
        """Build the service account credential.

        SA_EMAIL/SA_PRIVATE_KEY take precedence over SERVICE_ACCOUNT_FILE.

        Raises:
            ConfigError: missing_credential
        """
        scopes = self.get_scopes()
        if self.sa_email or self.sa_private_key:
            return ServiceAccountCredential.from_env_values(
                self.sa_email, self.sa_private_key, scopes
            )
        if self.service_account_file:
            return ServiceAccountCredential.from_service_account_file(
                self.service_account_file, scopes
            )
        raise ConfigError(
            "missing_credential",
            "Set SA_EMAIL and SA_PRIVATE_KEY, or SERVICE_ACCOUNT_FILE",
            status_code=500,
        )

    @field_validator("projects_config")
    @classmethod
    def validate_projects_config(cls, v: str) -> str:
        """Validate the project map parses."""
        if not v.strip():
            return "{}"
        try:
            _projects_adapter.validate_json(v)
        except PydanticValidationError as e:
            raise ValueError(f"PROJECTS_CONFIG is not a valid project map: {e}") from e
        return v

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is a known value."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of: {allowed}")
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError("port must be between 1 and 65535")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a known value."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of: {allowed}")
        return v_upper


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Settings are loaded once and cached for the lifetime of the application.
    """
    return Settings()
