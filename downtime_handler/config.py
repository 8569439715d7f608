from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    BOT_TOKEN: str
    DATABASE_URL: str
    DB_NAME: str
    DB_COLLECTION: str
    ONCALL_ADMIN: int
    PROJECT_ID: str
    SERVER_PORT: int
    SUPPORT_CHAT: str
    FORCE_DOWNTIME: bool
    DOWNTIME_DELAY: float = Field(ge=0)
    SERVER_HOST: str = "::"
    DASHBOARD_BASE_URL: str = "https://railway.app/project/"
    DEFAULT_LOCALE: str = "en"
    LOG_LEVEL: str = "INFO"
    model_config = SettingsConfigDict(
        env_file=".env",
    )


settings = Settings()
