import os

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, JsonConfigSettingsSource, SettingsConfigDict

from wsbridge.util.paths import get_runtime_path


class BridgeSettings(BaseModel):
    """WebSocket front end and the two outbound TCP legs."""

    host: str = Field(default="0.0.0.0")
    buffer_size: int = Field(default=1024, gt=0)  # Max bytes per forwarded chunk
    connect_timeout: float = Field(default=2.0, gt=0)  # Bounded wait for a pending connect
    retry_cap: int = Field(default=10, gt=0)  # Attempts before a leg cools down
    poll_interval: float = Field(default=0.1, gt=0)  # Writable/poll tick for the OUT leg
    reconnect_interval: float = Field(default=2.0, ge=0)  # Background reconnect, 0 disables
    history_size: int = Field(default=100, ge=0)  # OUT chunks kept for /api/history
    close_legs_on_session_end: bool = Field(default=False)


class RelaySettings(BaseModel):
    """Dual-port TCP relay used to stand in for the IN/OUT servers."""

    host: str = Field(default="0.0.0.0")
    in_port: int = Field(default=9002, ge=0, lt=65536)
    out_port: int = Field(default=9001, ge=0, lt=65536)
    tick: float = Field(default=0.01, gt=0)  # Sleep between loop iterations
    accept_backoff: float = Field(default=0.5, ge=0)  # Pause after a failed accept
    buffer_size: int = Field(default=1024, gt=0)


class LoggingSettings(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)")


# Compute config path at module load time for frozen executable support
_config_path = os.path.join(get_runtime_path(), "config.json")


class AppSettings(BaseSettings):
    bridge: BridgeSettings = Field(default_factory=BridgeSettings)
    relay: RelaySettings = Field(default_factory=RelaySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        json_file=_config_path,
        json_file_encoding="utf-8",
        env_prefix="WSBRIDGE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            JsonConfigSettingsSource(settings_cls),
            env_settings,
            init_settings,
            dotenv_settings,
            file_secret_settings,
        )


app_config = AppSettings()
