from pydantic_settings import BaseSettings
from typing import List, Any
import json
from pathlib import Path


DEFAULT_JWT_SECRET = "dev-secret-change-me"


def parse_cors_origins(v: Any) -> List[str]:
    """Parse CORS origins from string or list"""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        # Try JSON parsing first
        if v.startswith('['):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        # Fall back to comma-separated
        return [origin.strip() for origin in v.split(',') if origin.strip()]
    return []


class Settings(BaseSettings):
    """Application settings - all configurable via environment variables"""

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "DigiDiploma"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development, production, testing
    DEBUG: bool = False

    # Server Configuration
    SERVER_HOST: str = "0.0.0.0"
    PORT: int = 5000

    # ==========================================
    # URLs
    # ==========================================
    FRONTEND_URL: str = "http://localhost:8080"
    BACKEND_URL: str = ""

    # ==========================================
    # Database
    # ==========================================
    DATABASE_URL: str = "sqlite+aiosqlite:///./digidiploma.db"
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800
    DB_ECHO: bool = False

    # ==========================================
    # Authentication
    # ==========================================
    JWT_SECRET: str = DEFAULT_JWT_SECRET
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 10080  # 7 days
    PASSWORD_RESET_EXPIRE_MINUTES: int = 60
    BCRYPT_ROUNDS: int = 10

    # Email OTP
    OTP_EXPIRE_MINUTES: int = 10
    OTP_RESEND_COOLDOWN_SECONDS: int = 30

    # ==========================================
    # CORS (stored as comma-separated string, parsed to list)
    # ==========================================
    CORS_ORIGINS_STR: str = "http://localhost:8080,http://localhost:5173,http://127.0.0.1:8080"

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """FRONTEND_URL plus any extra comma-separated origins"""
        origins = parse_cors_origins(self.CORS_ORIGINS_STR)
        if self.FRONTEND_URL and self.FRONTEND_URL not in origins:
            origins.insert(0, self.FRONTEND_URL)
        return origins

    # ==========================================
    # Rate Limiting
    # ==========================================
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_STORAGE_URI: str = ""  # memory:// when empty, redis://host:6379 for shared limits

    @property
    def GENERAL_RATE_LIMIT(self) -> str:
        return "100 per 15 minutes" if self.is_production() else "1000 per 15 minutes"

    @property
    def AUTH_RATE_LIMIT(self) -> str:
        return "5 per 15 minutes" if self.is_production() else "100 per 15 minutes"

    @property
    def OTP_RATE_LIMIT(self) -> str:
        return "20 per 15 minutes" if self.is_production() else "1000 per 15 minutes"

    @property
    def PUBLIC_RATE_LIMIT(self) -> str:
        return "50/minute" if self.is_production() else "200/minute"

    # ==========================================
    # File Upload
    # ==========================================
    UPLOAD_DIR_NAME: str = "uploads"
    MAX_REQUEST_SIZE: int = 10 * 1024 * 1024  # 10MB JSON bodies
    MAX_UPLOAD_REQUEST_SIZE: int = 75 * 1024 * 1024  # base64 uploads
    MAX_MATERIAL_UPLOAD_SIZE: int = 50 * 1024 * 1024
    MAX_RESUME_SIZE: int = 7 * 1024 * 1024

    # ==========================================
    # Storage Configuration (Cloudflare R2, S3 API)
    # ==========================================
    STORAGE_DRIVER: str = "local"  # "local" or "r2"
    R2_ACCOUNT_ID: str = ""
    R2_ACCESS_KEY_ID: str = ""
    R2_SECRET_ACCESS_KEY: str = ""
    R2_BUCKET_NAME: str = ""
    R2_PUBLIC_BASE_URL: str = ""
    FORCE_R2_STORAGE: bool = False

    # ==========================================
    # Email
    # ==========================================
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 465
    SMTP_USER: str = ""
    SMTP_PASS: str = ""
    SMTP_FROM: str = ""
    SMTP_REPLY_TO: str = ""
    EMAIL_FROM_NAME: str = "DigiDiploma"

    # SendGrid Configuration (preferred when an API key is set)
    SENDGRID_API_KEY: str = ""
    SENDGRID_FROM_EMAIL: str = "noreply@digidiploma.in"

    ADMIN_ALERT_EMAIL: str = ""

    # ==========================================
    # Payment Gateway
    # ==========================================
    RAZORPAY_KEY_ID: str = ""
    RAZORPAY_KEY_SECRET: str = ""
    RAZORPAY_WEBHOOK_SECRET: str = ""
    DOWNLOAD_TOKEN_EXPIRE_HOURS: int = 24

    # ==========================================
    # Push Notifications (Firebase Cloud Messaging)
    # ==========================================
    FIREBASE_CREDENTIALS_PATH: str = ""
    FIREBASE_PROJECT_ID: str = ""

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env that aren't defined in Settings

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Initialize paths after pydantic validation
        self._base_dir = Path(__file__).resolve().parent.parent.parent
        self._upload_dir = Path(self.UPLOAD_DIR_NAME).resolve()

        self._upload_dir.mkdir(exist_ok=True, parents=True)
        Path(self.LOG_DIR).mkdir(exist_ok=True, parents=True)

    @property
    def BASE_DIR(self) -> Path:
        return self._base_dir

    @property
    def UPLOAD_DIR(self) -> Path:
        return self._upload_dir

    @property
    def public_base_url(self) -> str:
        """Base URL used when building links to files served by this API"""
        return (self.BACKEND_URL or self.FRONTEND_URL or f"http://localhost:{self.PORT}").rstrip("/")

    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    def is_dev_mode(self) -> bool:
        """Check if running in development mode"""
        return self.ENVIRONMENT == "development" or self.DEBUG

    def is_r2_configured(self) -> bool:
        return all([
            self.R2_ACCESS_KEY_ID,
            self.R2_SECRET_ACCESS_KEY,
            self.R2_ACCOUNT_ID,
            self.R2_BUCKET_NAME,
        ])

    def is_razorpay_configured(self) -> bool:
        return bool(self.RAZORPAY_KEY_ID.strip() and self.RAZORPAY_KEY_SECRET.strip())


# Create settings instance
settings = Settings()
