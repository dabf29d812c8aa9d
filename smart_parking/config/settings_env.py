from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Development
    DEV_MODE: bool = Field(default=True, description="Enable debug mode")

    # Database
    DATABASE_URL: str = Field(default="sqlite:///./parking.db", description="Database connection URL")
    ASYNC_DATABASE_URL: str = Field(default="sqlite+aiosqlite:///./parking.db", description="Async database URL")

    # FastAPI
    FASTAPI_HOST: str = Field(default="localhost", description="FastAPI host")
    FASTAPI_PORT: int = Field(default=8080, description="FastAPI port")

    # Billing
    CURRENCY: str = Field(default="EUR", description="Currency of every amount")
    BILLING_INCREMENT_MINUTES: int = Field(default=15, description="Stays are billed in increments of this many minutes")
    OVERSTAY_BASE_PENALTY: float = Field(default=20.0, description="Fixed penalty charged on overstay or unauthorized occupancy")
    SUBSCRIPTION_DISCOUNT: float = Field(default=0.20, description="Discount applied to subscription monthly price")
    WEEKS_PER_MONTH: float = Field(default=4.33, description="Weeks per month used for subscription pricing")

    # Reservations
    MIN_RESERVATION_MINUTES: int = Field(default=15, description="Shortest reservation accepted")
    MAX_RESERVATION_HOURS: int = Field(default=24, description="Longest reservation accepted")

    # Admission
    ADMISSION_MAX_RETRIES: int = Field(default=3, description="Attempts before a lost admission race is reported as a conflict")
    SEARCH_MAX_RADIUS_KM: float = Field(default=100.0, description="Largest radius accepted by location search")


# Create settings instance
settings = Settings()
