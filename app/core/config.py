from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql://curvas:curvas@db:5432/curvas"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Comma-separated allowed origins, or "*" to allow all.
    # Example: "https://painel.otus.com,https://api.otus.com"
    CORS_ORIGINS: str = "*"

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
