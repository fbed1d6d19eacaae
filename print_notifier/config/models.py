"""Configuration schema models using Pydantic."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .duration import DurationParseError, parse_duration, validate_duration_range


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    KEY_VALUE = "key-value"


def _non_blank(value: str) -> str:
    stripped = value.strip()
    if not stripped:
        raise ValueError("Field cannot be empty or whitespace-only")
    return stripped


class ListenerConfig(BaseModel):
    """Change-feed listener settings."""

    enabled: bool = Field(True, description="Subscribe to job changes at startup")
    poll_interval: str = Field("10s", description="How often the change feed polls the store")

    # Computed field
    poll_interval_seconds: Optional[int] = None

    @model_validator(mode="after")
    def compute_poll_interval(self):
        try:
            seconds = parse_duration(self.poll_interval)
            validate_duration_range(
                seconds, min_seconds=1, max_seconds=3600, label="Listener poll interval"
            )
        except DurationParseError as e:
            raise ValueError(str(e)) from e
        self.poll_interval_seconds = seconds
        return self


class EmailConfig(BaseModel):
    """Completion email settings."""

    use_tls: bool = Field(True, description="Use TLS/STARTTLS for the SMTP connection")
    subject: str = Field("Your Print Job is Complete!", description="Subject line")
    brand_name: str = Field("PrintSuit", description="Brand shown in the email footer")
    dashboard_url: str = Field(
        "http://localhost:5173/dashboard", description="Link behind the 'View Dashboard' button"
    )

    @field_validator("subject", "brand_name", "dashboard_url")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        return _non_blank(v)


class FormattingConfig(BaseModel):
    """Defaults substituted for fields missing from a job record."""

    default_paper_size: str = Field("A4", min_length=1)
    default_color: str = Field("black", min_length=1)
    default_orientation: str = Field("portrait", min_length=1)
    currency_symbol: str = Field("₹", min_length=1)


class ServerConfig(BaseModel):
    """HTTP server binding."""

    host: str = Field("0.0.0.0", min_length=1)
    port: int = Field(5000, ge=1, le=65535)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(LogFormat.KEY_VALUE, description="json or key-value")

    model_config = {"use_enum_values": True, "validate_default": True}


class AppConfig(BaseModel):
    """Root configuration object for the print notifier."""

    sweep_interval: str = Field("5m", description="Interval between reconciliation sweeps")
    completion_status: str = Field(
        "completed",
        description="Status literal that marks a job as completed, shared by every trigger path",
    )
    listener: ListenerConfig = Field(default_factory=ListenerConfig)
    email: EmailConfig = Field(default_factory=EmailConfig)
    formatting: FormattingConfig = Field(default_factory=FormattingConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    # Computed field
    sweep_interval_seconds: Optional[int] = None

    @field_validator("completion_status")
    @classmethod
    def strip_completion_status(cls, v: str) -> str:
        return _non_blank(v)

    @model_validator(mode="after")
    def compute_sweep_interval(self):
        try:
            seconds = parse_duration(self.sweep_interval)
            validate_duration_range(seconds)
        except DurationParseError as e:
            raise ValueError(str(e)) from e
        self.sweep_interval_seconds = seconds
        return self
