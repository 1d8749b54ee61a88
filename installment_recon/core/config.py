from pydantic_settings import BaseSettings
from typing import List, Optional
from functools import lru_cache


class Settings(BaseSettings):
    # Project
    PROJECT_NAME: str = "Installment Reconciliation API"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    
    # Database
    DATABASE_URL: str
    
    # CORS
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000"]
    
    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"
    
    # Tap payment gateway
    TAP_API_URL: str = "https://api.tap.company/v2"
    TAP_SECRET_KEY: str = ""
    TAP_TIMEOUT_SECONDS: Optional[float] = None
    TAP_PAID_STATUSES: List[str] = ["CAPTURED", "PAID"]
    
    # Reconciliation
    PHONE_MATCH_DIGITS: int = 8
    
    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False
    LOG_DIR: Optional[str] = None
    
    # File Upload
    MAX_UPLOAD_SIZE: int = 20 * 1024 * 1024  # 20MB
    ALLOWED_EXTENSIONS: List[str] = [".csv", ".xlsx"]
    
    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
