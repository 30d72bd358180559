from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    environment: str = "development"
    debug: bool = True
    allowed_origins: str = "http://localhost:3000,http://localhost:19006"

    # "api" talks to the upstream services, "mock" keeps everything local
    mode: str = "api"

    # Upstream business API (permission groups, packages)
    api_base_url: str = "https://api.example.com"
    remote_timeout_seconds: float = 10.0

    # Auth / JWT
    secret_key: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # Redis (local persistent cache)
    redis_url: str = "redis://localhost:6379/0"
    cache_prefix: str = "bizdesk"

    # Subscription package assumed when a user has none on record
    default_package: str = "premium"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def is_mock(self) -> bool:
        return self.mode == "mock"


settings = Settings()
