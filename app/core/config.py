from enum import Enum
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class ObligationPolicy(str, Enum):
    """Which unpaid obligation a slip is matched against."""
    LATEST_BILL = "latest_bill"      # payer's row in the group's newest bill only
    LATEST_UNPAID = "latest_unpaid"  # payer's newest unpaid row across all bills


class Settings(BaseSettings):
    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # API Settings
    PROJECT_NAME: str = "Slipsplit API"
    API_V1_STR: str = "/api/v1"
    PROJECT_VERSION: str = "0.1.0"
    DESCRIPTION: str = "Group bill splitting with bank slip verification"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # MongoDB
    MONGODB_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "slipsplit"

    # Gemini
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_THINKING_BUDGET: int = 0  # -1 leaves thinking to the model
    EXTRACTION_TIMEOUT_SECONDS: float = 60.0

    # LINE Messaging API
    LINE_CHANNEL_SECRET: str = ""
    LINE_CHANNEL_ACCESS_TOKEN: str = ""
    LINE_API_URL: str = "https://api.line.me"
    LINE_DATA_API_URL: str = "https://api-data.line.me"
    LIFF_ID: str = ""

    # Slip verification
    AMOUNT_TOLERANCE: float = 0.05
    REQUIRE_QR_CODE: bool = True
    OBLIGATION_POLICY: ObligationPolicy = ObligationPolicy.LATEST_BILL
    MAX_IMAGE_SIZE: int = 10485760

    # Bill drafts
    BILL_DRAFT_TTL_MINUTES: int = 30

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8000"]

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env"
    )

settings = Settings()
