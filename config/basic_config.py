from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from dotenv import load_dotenv

# Load environment variables from .env
load_dotenv(override=True)


class Settings(BaseSettings):
    MONGO_HOST: str = "localhost"
    MONGO_PORT: int = 27017
    MONGO_DATABASE: str = "connectcall"
    MONGO_USER: Optional[str] = None
    MONGO_PASSWORD: Optional[str] = None

    PORT: int = 8000
    HOST: str = "0.0.0.0"
    RELOAD: bool = False
    ALLOWED_HOSTS: str = "*"

    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = True
    LOG_DIR: str = "logs"

    # Global call pricing, used when no system_config document overrides it
    DEFAULT_AUDIO_COST_PER_MINUTE: float = 10
    DEFAULT_VIDEO_COST_PER_MINUTE: float = 15
    MINIMUM_CALL_DURATION_SECONDS: int = 60
    LOW_BALANCE_WARNING_SECONDS: int = 60
    RECONNECTION_TIMEOUT_SECONDS: int = 45

    BILLING_TICK_INTERVAL_SECONDS: int = 15

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def allowed_hosts(self) -> list:
        return [host.strip() for host in self.ALLOWED_HOSTS.split(",") if host.strip()]


settings = Settings()
