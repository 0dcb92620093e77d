import os

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SOCKET_NAME = "hyprvisor.sock"
FALLBACK_SOCKET_DIR = "/tmp"


def default_socket_path() -> str:
    runtime_dir = os.environ.get("XDG_RUNTIME_DIR")
    return os.path.join(runtime_dir or FALLBACK_SOCKET_DIR, SOCKET_NAME)


class Config(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="HYPRVISOR_", extra="ignore")

    socket_path: str = ""
    broadcast_interval_seconds: float = Field(default=2.0, gt=0)
    read_buffer_size: int = Field(default=1024, ge=2)
    handshake_timeout_seconds: float | None = 5.0
    write_timeout_seconds: float | None = 5.0

    workspace_count: int = Field(default=10, ge=1)
    poll_interval_seconds: float = Field(default=0.5, gt=0)
    hyprland_instance_signature: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "HYPRVISOR_HYPRLAND_INSTANCE_SIGNATURE", "HYPRLAND_INSTANCE_SIGNATURE"
        ),
    )

    log_level: str = "INFO"
    log_to_console: bool = False

    @model_validator(mode="after")
    def _resolve_socket_path(self) -> "Config":
        if not self.socket_path:
            self.socket_path = default_socket_path()
        return self
