# wabot/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    app_env: Literal["dev", "staging", "prod"] = "dev"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 3000

    # WhatsApp Cloud API
    whatsapp_access_token: str | None = None  # Long-lived access token for Graph API
    whatsapp_phone_number_id: str | None = None  # Phone Number ID from Meta Business Suite
    whatsapp_verify_token: str | None = None  # Token for webhook verification handshake
    whatsapp_app_secret: str | None = None  # App secret for X-Hub-Signature-256 checks (optional)
    whatsapp_api_version: str = "v23.0"

    # Session Management
    # "memory" - per-process dict, lost on restart
    # "file"   - single JSON file keyed by conversation id
    session_backend: Literal["memory", "file"] = "memory"
    session_file: str = "sessions.json"

    # Dispatch
    serialize_conversations: bool = True  # One in-flight dispatch per conversation

    # Feature Flags
    enable_request_logging: bool = True

    @property
    def is_production(self) -> bool:
        return self.app_env == "prod"

    @property
    def whatsapp_enabled(self) -> bool:
        """Check if Cloud API credentials are configured"""
        return bool(
            self.whatsapp_access_token
            and self.whatsapp_phone_number_id
            and self.whatsapp_verify_token
        )

    def validate_required_for_production(self) -> list[str]:
        """Validate that required settings exist for production"""
        if not self.is_production:
            return []

        required_fields = [
            ("whatsapp_access_token", self.whatsapp_access_token),
            ("whatsapp_phone_number_id", self.whatsapp_phone_number_id),
            ("whatsapp_verify_token", self.whatsapp_verify_token),
        ]
        return [name for name, value in required_fields if not value]


def warn_on_risky_config(s: "Settings") -> list[str]:
    warnings: list[str] = []

    if not s.whatsapp_enabled:
        warnings.append(
            "WhatsApp credentials are incomplete "
            "(WHATSAPP_ACCESS_TOKEN, WHATSAPP_PHONE_NUMBER_ID, WHATSAPP_VERIFY_TOKEN)."
        )

    if not s.whatsapp_app_secret:
        warnings.append("whatsapp_app_secret is not set (webhook payload signatures are not checked).")

    if s.session_backend == "memory" and s.is_production:
        warnings.append("prod: session_backend=memory (sessions are lost on restart).")

    if s.session_backend == "file" and not s.serialize_conversations:
        warnings.append(
            "session_backend=file with serialize_conversations=False: "
            "concurrent events for one conversation may overwrite each other's session."
        )

    if s.is_production and s.log_level.upper() == "DEBUG":
        warnings.append("prod: log_level=DEBUG (debug lines for every event and delivery status).")

    return warnings


settings = Settings()
