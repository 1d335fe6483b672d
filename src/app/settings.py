from functools import lru_cache
from typing import Literal, final

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict
from yarl import URL


class PostgresConfig(BaseModel):
    user: str
    password: str
    host: str
    port: int = 5432
    db: str


class JwtConfig(BaseModel):
    secret_key: str
    algorithm: str = "HS256"
    access_token_expires_in_minutes: int = 60 * 8


class APIConfig(BaseModel):
    title: str = "Device Trust API"
    version: str = "1.0.0"
    port: int = 8000
    host: str = "0.0.0.0"
    allowed_hosts: list[str] = []


class AuthConfig(BaseModel):
    otp_ttl_seconds: int = 120
    otp_code_min: int = 100_000
    otp_code_max: int = 999_999
    # Demo only: echoes the code back in the issue response.
    expose_otp_code: bool = False

    session_read_retry_delay_seconds: float = 0.5
    recent_activity_limit: int = 10
    enforce_session_revocation: bool = True
    trust_forwarded_ip: bool = False


class IdentityConfig(BaseModel):
    base_url: str = "http://localhost:9000"
    timeout_seconds: float = 5.0


class GeoConfig(BaseModel):
    enabled: bool = True
    base_url: str = "https://ipapi.co"
    fallback_base_url: str = "http://ip-api.com"
    timeout_seconds: float = 3.0
    cache_ttl_seconds: int = 3600


class DeliveryConfig(BaseModel):
    webhook_url: str | None = None
    timeout_seconds: float = 5.0


@final
class Config(BaseSettings):
    model_config: SettingsConfigDict = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="APP__",
        env_nested_delimiter="__",
        extra="ignore",
    )

    env: Literal["local", "dev", "prod"] = "local"

    api: APIConfig = APIConfig()
    jwt: JwtConfig

    postgres: PostgresConfig | None = None
    database_dsn: str | None = None

    auth: AuthConfig = AuthConfig()
    identity: IdentityConfig = IdentityConfig()
    geo: GeoConfig = GeoConfig()
    delivery: DeliveryConfig = DeliveryConfig()

    @property
    def database_url(self) -> str:
        if self.database_dsn:
            return self.database_dsn
        if self.postgres is None:
            raise ValueError("Either APP__DATABASE_DSN or APP__POSTGRES__* must be set")

        host = "localhost" if self.env == "local" else self.postgres.host
        return URL.build(
            scheme="postgresql+asyncpg",
            user=self.postgres.user,
            password=self.postgres.password,
            host=host,
            port=self.postgres.port,
            path=f"/{self.postgres.db}",
        ).human_repr()


@lru_cache
def get_config() -> Config:
    return Config()
