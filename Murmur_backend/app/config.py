from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8098
    CORS_ORIGINS: str = "*"
    LOG_LEVEL: str = "INFO"

    # Snapshot store: sql | json | http | memory
    STORE_BACKEND: str = "sql"
    DATABASE_PATH: str = "murmur.db"
    SQL_ECHO: bool = False
    STORE_JSON_PATH: str = "db.json"
    STORE_HTTP_URL: str = "http://localhost:3001"
    STORE_HTTP_TIMEOUT: float = 8.0
    STORE_MAX_RETRIES: int = 3

    # Space policy
    DEFAULT_AVATAR_URL: str = "https://www.mediasfu.com/logo192.png"
    ENFORCE_CAPACITY: bool = False
    EXPIRY_POLL_SECONDS: float = 1.0

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


settings = Settings()
