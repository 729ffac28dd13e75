"""Application Settings - Central Configuration"""
from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )
    
    # MongoDB
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "gatepass_dev"
    
    # Bearer tokens (issued by the login service)
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    jwt_audience: str = ""
    
    # Azure AD app used for the service mailbox token
    aad_tenant_id: str = ""
    aad_client_id: str = ""
    aad_client_secret: str = ""
    
    # Service Mailbox (ROPC)
    service_mailbox_email: str = ""
    service_mailbox_password: str = ""
    email_enabled: bool = True
    
    # Directory lookups
    directory_cache_ttl_seconds: int = 300
    directory_cache_max_entries: int = 1000
    
    # Socket.IO
    socket_cors_origins: str = "*"
    socket_path: str = "socket.io"
    
    # Logging
    logs_path: str = "./logs"
    log_level: str = "INFO"
    
    # CORS - set to "*" to allow all origins
    cors_origins: str = "*"
    
    # Frontend URL (for email links)
    frontend_url: str = "http://localhost:3000"
    
    # Scheduler
    scheduler_interval_seconds: int = 10  # Process notifications every 10 seconds
    notification_max_retries: int = 5
    notification_lock_duration_seconds: int = 60
    stale_lock_cleanup_minutes: int = 10
    scheduler_enabled: bool = True
    
    # Admin reporting
    report_default_limit: int = 50
    report_max_limit: int = 200
    
    # Environment
    environment: str = "development"
    debug: bool = True
    
    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string to list"""
        return [origin.strip() for origin in self.cors_origins.split(",")]
    
    @property
    def socket_cors_origins_list(self) -> List[str]:
        """Parse Socket.IO CORS origins string to list"""
        return [origin.strip() for origin in self.socket_cors_origins.split(",")]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
