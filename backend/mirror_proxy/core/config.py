from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        protected_namespaces=(),
    )

    environment: str = Field(default="prod", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    permitted_ips: str = Field(default="", alias="PERMITTED_IPS")
    client_ip_header: str = Field(default="CF-Connecting-IP", alias="CLIENT_IP_HEADER")
    public_key_string: str | None = Field(default=None, alias="PUBLIC_KEY_STRING")
    private_key_string: str | None = Field(default=None, alias="PRIVATE_KEY_STRING")

    mirror_domain: str = Field(default="localhost", alias="MIRROR_DOMAIN")

    storage_backend: Literal["s3", "local"] = Field(default="s3", alias="STORAGE_BACKEND")
    local_storage_dir: str = Field(default="./storage", alias="LOCAL_STORAGE_DIR")

    s3_endpoint: HttpUrl | None = Field(default=None, alias="S3_ENDPOINT_URL")
    s3_access_key: str = Field(default="change-me", alias="S3_ACCESS_KEY")
    s3_secret_key: str = Field(default="change-me", alias="S3_SECRET_KEY")
    s3_region: str | None = Field(default=None, alias="S3_REGION")
    s3_bucket_mods: str | None = Field(default=None, alias="S3_BUCKET_MODS")
    s3_bucket_screenshots: str | None = Field(default=None, alias="S3_BUCKET_SCREENSHOTS")
    s3_bucket_rich_presence_icons: str | None = Field(
        default=None,
        alias="S3_BUCKET_RICH_PRESENCE_ICONS",
    )

    @property
    def permitted_ip_list(self) -> tuple[str, ...]:
        return tuple(ip.strip() for ip in self.permitted_ips.split(",") if ip.strip())


@lru_cache
def get_settings() -> Settings:
    return Settings()
