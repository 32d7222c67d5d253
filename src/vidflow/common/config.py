"""Service configuration loaded from environment variables."""

import re
from typing import Annotated, ClassVar

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict, SettingsError

from .errors import ConfigurationError

DEFAULT_EXCLUDE_PATTERNS: tuple[str, ...] = (r"/adjump/", r"/ads/", r"/commercial/")


class Settings(BaseSettings):
    """Runtime settings shared by the gateway and io services.

    Fields are read from environment variables of the same name, except where
    a ``validation_alias`` names the variable. Keyword arguments by field name
    take precedence over the environment.
    """

    database_url: str = Field(
        default="sqlite+aiosqlite:///./vidflow.db",
        description="SQLAlchemy async URL of the relational store",
    )

    # Cloud Tasks
    project_id: str | None = Field(default=None, validation_alias="GCP_PROJECT_ID")
    location: str = Field(default="asia-southeast1", validation_alias="GCP_LOCATION")
    cloud_task_service_account: str | None = Field(
        default=None, validation_alias="CLOUD_TASKS_SERVICE_ACCOUNT"
    )
    stream_video_queue: str = "stream-video"
    convert_video_queue: str = "convert-video"
    dispatch_deadline_seconds: int = Field(default=1800, gt=0)

    # Handler base urls
    io_service_url: str | None = None
    compute_service_url: str | None = None

    # Object storage
    storage_bucket: str | None = Field(default=None, validation_alias="GCP_STORAGE_BUCKET")
    local_storage_dir: str | None = Field(
        default=None,
        description="Use the filesystem instead of GCS when set",
    )

    # Media pipeline
    request_timeout_seconds: float = Field(default=15.0, gt=0)
    segment_concurrency: int = Field(default=5, ge=1)
    max_segment_size_bytes: int | None = Field(default=None, gt=0)
    exclude_patterns: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS),
        validation_alias="HLS_EXCLUDE_PATTERNS",
        description="Comma separated regular expressions matched against segment urls",
    )

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        case_sensitive=False,
        populate_by_name=True,
        extra="forbid",
    )

    @field_validator("exclude_patterns", mode="before")
    @classmethod
    def _split_patterns(cls, value: object) -> object:
        if isinstance(value, str):
            return [pattern.strip() for pattern in value.split(",") if pattern.strip()]
        return value

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from the process environment.

        Raises:
            ConfigurationError: a variable is present but cannot be parsed
        """
        try:
            return cls()
        except ValidationError as exc:
            invalid = [".".join(str(part) for part in error["loc"]) for error in exc.errors()]
            raise ConfigurationError(
                f"Invalid environment variables: {', '.join(invalid)}",
                context={"invalid": invalid},
                source="common/config.from_env",
            ) from exc
        except SettingsError as exc:
            raise ConfigurationError(
                f"Invalid environment variables: {exc}",
                source="common/config.from_env",
            ) from exc

    def compiled_exclude_patterns(self) -> list[re.Pattern[str]]:
        return [re.compile(pattern) for pattern in self.exclude_patterns]

    def validate_queue(self) -> None:
        """Raise ConfigurationError if Cloud Tasks settings are incomplete."""
        missing: list[str] = []
        if not self.project_id:
            missing.append("GCP_PROJECT_ID")
        if not self.location:
            missing.append("GCP_LOCATION")
        if not self.cloud_task_service_account:
            missing.append("CLOUD_TASKS_SERVICE_ACCOUNT")

        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}",
                context={"missing": missing},
                source="common/config.validate_queue",
            )

    def validate_storage(self) -> None:
        if not self.storage_bucket and not self.local_storage_dir:
            raise ConfigurationError(
                "Missing required environment variables: GCP_STORAGE_BUCKET",
                context={"missing": ["GCP_STORAGE_BUCKET"]},
                source="common/config.validate_storage",
            )
