# core/config.py
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal, Optional


class Settings(BaseSettings):
    # ────────────────────────────────
    # 1. APP & ENVIRONMENT
    # ────────────────────────────────
    PROJECT_NAME: str = "CampusFlow Payments"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    BACKEND_URL: str = "http://127.0.0.1:8000"

    # ────────────────────────────────
    # 2. DOCUMENT STORE (Firestore)
    # ────────────────────────────────
    STORE_BACKEND: Literal["firestore", "memory"] = "firestore"
    # Base64-encoded Firebase service account JSON
    CAMPUSFLOW_FIREBASE_KEY: Optional[str] = Field(
        default=None,
        description="Base64-encoded Firebase service account JSON",
    )
    BILLING_COLLECTION: str = "settings"
    BILLING_DOCUMENT: str = "billing"

    # ────────────────────────────────
    # 3. MERCHANT / GH-QR
    # ────────────────────────────────
    MERCHANT_NAME: str = "CampusFlow"
    MOMO_DIAL_CODE: str = "*170#"
    MOMO_RECEIVER_NUMBER: str = "0536282694"

    # ────────────────────────────────
    # 4. INVOICES
    # ────────────────────────────────
    INVOICE_TTL_MINUTES: int = 30
    SIMULATE_PAYMENTS: bool = True
    SIMULATED_PAYMENT_DELAY_SECONDS: float = 10.0

    # ────────────────────────────────
    # 5. OTP + SMS (Frog / Wigal)
    # ────────────────────────────────
    FROG_API_BASE_URL: str = "https://frogapi.wigal.com.gh/api/v3"
    FROG_API_KEY: str = ""
    FROG_USERNAME: str = ""
    FROG_SENDER_ID: str = "CampusFlow"
    OTP_EXPIRY_MINUTES: int = 5
    OTP_LENGTH: int = 6

    # ────────────────────────────────
    # 6. MOBILE MONEY (Nalo PayPlus)
    # ────────────────────────────────
    NALO_API_URL: str = "https://api.nalosolutions.com/payplus/api/"
    NALO_MERCHANT_ID: str = ""
    NALO_USERNAME: str = ""
    NALO_PASSWORD: str = ""

    # ────────────────────────────────
    # 7. PURCHASE WIZARD
    # ────────────────────────────────
    POLL_INTERVAL_SECONDS: float = 5.0
    POLL_TIMEOUT_SECONDS: float = 300.0

    # ────────────────────────────────
    # 8. SECURITY
    # ────────────────────────────────
    SECRET_KEY: str = "change-me-in-production"
    ALGORITHM: str = "HS256"

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


# Create singleton
settings = Settings()
