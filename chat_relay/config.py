# chat_relay/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    PROJECT_NAME: str = "Chat Relay"
    PROJECT_VERSION: str = "1.0.0"
    PROJECT_DESCRIPTION: str = "Real-time chat server with a REST fallback"
    API_V1_STR: str = "/api/v1"
    LOG_LEVEL: str = "INFO"

    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_SECRET_KEY: str
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    REDIS_HOST: str
    REDIS_PORT: int
    DATABASE_URL: str = "sqlite+aiosqlite:///:memory:"

    CORS_ORIGINS: list[str] = ["http://localhost:5173", "http://localhost:3000"]
    SOCKET_PATH: str = "socket.io"
    # engine.io heartbeat, seconds; a missed pong is handled as a disconnect
    SOCKET_PING_INTERVAL: int = 25
    SOCKET_PING_TIMEOUT: int = 20

    MEDIA_ROOT: str = "media"
    MEDIA_URL: str = "/media"
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024
    MESSAGES_PAGE_SIZE: int = 50

    model_config = SettingsConfigDict(env_file=".env", extra="allow")
