# settings.py
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Project
    PROJECT_NAME: str = "Upload Flow"
    API_PREFIX: str = "/api"
    LOG_LEVEL: str = "INFO"

    # Frontend origins (CORS), comma separated
    CORS_ORIGINS: str = "*"

    # Airtable (record store)
    AIRTABLE_API_URL: str = "https://api.airtable.com/v0"
    AIRTABLE_API_KEY: str = ""
    AIRTABLE_BASE_ID: str = ""
    AIRTABLE_TABLE_NAME: str = ""
    RECORD_STORE_TIMEOUT: float = 30.0
    # Lookup window for the pending-record check. Customers with more
    # historical records than this may have an undetected pending one.
    PENDING_LOOKUP_LIMIT: int = 10

    # Vercel Blob (object store)
    BLOB_READ_WRITE_TOKEN: str = ""

    # Brevo (upload notifications)
    BREVO_API_KEY: str = ""
    EMAIL_SENDER: str = ""
    NOTIFY_RECIPIENT: str = "info@targetx.de"
    NOTIFY_TIMEOUT: float = 15.0

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def cors_origins(self) -> list:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


# Instantiate settings globally
settings = Settings()
