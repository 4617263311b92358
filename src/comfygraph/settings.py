from functools import cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class ComfySettings(BaseSettings):
    """Connection settings, read from `COMFYGRAPH_*` environment variables."""

    model_config = SettingsConfigDict(env_prefix="COMFYGRAPH_")

    host: str = "127.0.0.1:8188"
    client_id: Optional[str] = None
    secure: bool = False  # use https/wss
    timeout: float = 30.0  # seconds, per HTTP request

    @property
    def http_url(self) -> str:
        return f"{'https' if self.secure else 'http'}://{self.host}"

    @property
    def ws_url(self) -> str:
        return f"{'wss' if self.secure else 'ws'}://{self.host}/ws"


@cache
def get_settings() -> ComfySettings:
    return ComfySettings()
