"""
Configuration Schemas for padrun.

Security:
    Secret defaults use SecretStr to prevent accidental logging.
    Access the value with `.get_secret_value()`.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, SecretStr


class AppSettings(BaseModel):
    """
    Application settings model.

    Built from PADRUN_* environment variables by get_settings().
    """

    # Service identity
    service_name: str = "padrun"
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Pad source (file path wins over module path; starter pad otherwise)
    pad_path: str | None = Field(None, description="Path to a pad source file")
    pad_module: str | None = Field(None, description="Dotted path of an importable pad module")

    # Invocation secrets used when the platform headers are absent
    default_user_context: SecretStr = Field(
        default=SecretStr("[]"),
        description="JSON list of {key, value} tenant secrets",
    )
    default_url: str | None = Field(None, description="Public invocation URL")

    # Engine agent
    engine_report_url: str = "https://engine-report.apollodata.com"
    engine_report_interval: float = Field(10.0, gt=0)
    engine_timeout: float = Field(5.0, gt=0)
    engine_debug_reports: bool = True

    def proxy_options(self) -> dict[str, object]:
        """Keyword options for ProxyAgentManager."""
        return {
            "report_url": self.engine_report_url,
            "report_interval": self.engine_report_interval,
            "timeout": self.engine_timeout,
            "debug_reports": self.engine_debug_reports,
        }
