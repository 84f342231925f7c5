from typing import List, Optional
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """Application settings"""
    
    # Application
    APP_NAME: str = "Wallet Auth API"
    VERSION: str = "1.0.0"
    DESCRIPTION: str = "Phone and email OTP login and guarded phone number change for the wallet app"
    
    # Security
    SECRET_KEY: str = "wallet-auth-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7
    
    # CORS
    ALLOWED_HOSTS: List[str] = ["*"]
    
    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    
    # Database
    DATABASE_URL: Optional[str] = None
    
    # Identity provider (Stytch)
    STYTCH_PROJECT_ID: str = ""
    STYTCH_SECRET: str = ""
    STYTCH_ENV: str = "test"
    PROVIDER_TIMEOUT_SECONDS: float = 10.0
    
    # Logging
    LOG_LEVEL: str = "INFO"
    
    model_config = {"env_file": ".env", "case_sensitive": True}

# Create settings instance
settings = Settings()
