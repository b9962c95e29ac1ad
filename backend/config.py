from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App
    APP_ENV: str = "development"
    DEBUG: bool = True

    # MongoDB
    MONGO_URL: str = "mongodb://localhost:27017"
    DB_NAME: str = "ZareShop"

    # JWT (verification only, tokens are issued by the auth service)
    JWT_SECRET: str = "changeme_minimum_32_chars_here_please"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 120

    # Listings
    DEFAULT_PAGE_LIMIT:        int = 20
    PAYOUT_HISTORY_PAGE_LIMIT: int = 10
    MAX_PAGE_LIMIT:            int = 100
    MAX_REASON_LENGTH:         int = 255

    # Throttling of cashout / payout creation
    RATE_LIMIT_ENABLED: bool = True
    CASHOUT_RATE_LIMIT: str  = "10/minute"

    CURRENCY: str = "ETB"

    model_config = SettingsConfigDict(
        env_file=[".env", "../.env"],
        case_sensitive=True,
        extra="ignore",
    )


settings = Settings()
