from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # ─── Application ───────────────────────────────────────────────────────────
    APP_NAME: str = "Account Security Service"
    APP_ENV:  str = "development"
    APP_DEBUG: bool = True
    APP_HOST:  str = "0.0.0.0"
    APP_PORT:  int = 8000

    # ─── Database ──────────────────────────────────────────────────────────────
    DATABASE_URL:          str  = "sqlite:///./account_security.db"
    DATABASE_POOL_SIZE:    int  = 10
    DATABASE_MAX_OVERFLOW: int  = 20
    DATABASE_POOL_TIMEOUT: int  = 30
    DATABASE_ECHO:         bool = False

    # ─── JWT ───────────────────────────────────────────────────────────────────
    SECRET_KEY:                    str
    ALGORITHM:                     str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES:   int = 60
    RESET_TOKEN_EXPIRE_MINUTES:    int = 15

    # ─── Password Hashing ──────────────────────────────────────────────────────
    PASSWORD_HASH_SCHEME: str = "argon2id"     # argon2id | legacy-sha256
    ARGON2_TIME_COST:     int = 4
    ARGON2_MEMORY_COST:   int = 65536          # KiB
    ARGON2_PARALLELISM:   int = 8
    ARGON2_HASH_LEN:      int = 16

    # ─── Login Lockout ─────────────────────────────────────────────────────────
    LOGIN_MAX_ATTEMPTS:     int = 3
    LOGIN_LOCKOUT_MINUTES:  int = 15
    LOGIN_CONFLICT_RETRIES: int = 3

    # ─── OTP ───────────────────────────────────────────────────────────────────
    OTP_EXPIRE_MINUTES:      int = 15
    OTP_LENGTH:              int = 6
    OTP_MAX_VERIFY_ATTEMPTS: int = 0           # 0 = unlimited

    # ─── Email ─────────────────────────────────────────────────────────────────
    EMAIL_BACKEND: str = "console"             # console | smtp
    SMTP_HOST:     str = ""
    SMTP_PORT:     int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM:     str = ""
    SMTP_USE_TLS:  bool = True

    # ─── CORS ──────────────────────────────────────────────────────────────────
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:8000"

    def get_cors_origins(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",")]

    @property
    def is_development(self) -> bool:
        return self.APP_ENV == "development"

    model_config = {"env_file": ".env.example", "case_sensitive": True, "extra": "ignore"}


settings = Settings()
