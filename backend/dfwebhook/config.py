"""
Dialogflow Webhook — Application Configuration
===============================================

What:  Centralized configuration management using Pydantic Settings.
How:   Values are read from environment variables (or a .env file), validated
       on load, and exposed through the module-level `settings` singleton.
Who:   Imported by the middleware pipeline, the services and the entrypoint.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Every value has a development default; none of them is a secret.
    """

    app_name: str = Field(default="dfwebhook")

    # ── Server ────────────────────────────────────────────────────────────
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080, ge=1, le=65535)

    # Seconds an idle keep-alive connection stays open
    idle_timeout: int = Field(default=60, ge=1, le=600)

    # Seconds in-flight requests get to finish after SIGINT/SIGTERM
    shutdown_grace_period: int = Field(default=15, ge=0, le=300)

    # ── Logging ───────────────────────────────────────────────────────────
    # Valid: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = Field(default="INFO")

    # Upper bound on the request body bytes buffered for the access log.
    # Bodies beyond this are still delivered to the handler in full.
    log_body_max_bytes: int = Field(default=65_536, ge=0)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    # ── Request correlation ───────────────────────────────────────────────
    request_id_header: str = Field(default="X-Request-Id", min_length=1)

    # ── Dialogflow ────────────────────────────────────────────────────────
    # Language code attached to every followup event
    language_code: str = Field(default="en-US")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }


settings = Settings()
