import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    """
    Holds settings read straight from environment variables.
    """
    # Local key/value store (device snapshot storage)
    APPLICATION_REDIS_URL: str = os.environ.get("APPLICATION_REDIS_URL", "redis://localhost:6379/0")
    RATE_LIMITER_REDIS_URL: str = os.environ.get("RATE_LIMITER_REDIS_URL", "memory://")

    # Remote PHP/MySQL API
    REMOTE_API_BASE_URL: str = os.environ.get("REMOTE_API_BASE_URL", "https://yourserver.com/api")
    REMOTE_API_TIMEOUT_SECONDS: float = float(os.environ.get("REMOTE_API_TIMEOUT_SECONDS", 30))

    # JWT
    SECRET_KEY: str = os.environ.get("SECRET_KEY", "change-me-in-production")
    ALGORITHM: str = os.environ.get("ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.environ.get("ACCESS_TOKEN_EXPIRE_MINUTES", 720))

    # Background jobs
    HEARTBEAT_INTERVAL_SECONDS: int = int(os.environ.get("HEARTBEAT_INTERVAL_SECONDS", 60))
    CONNECTIVITY_PROBE_INTERVAL_SECONDS: int = int(os.environ.get("CONNECTIVITY_PROBE_INTERVAL_SECONDS", 30))
    LOCATION_POLL_SECONDS: int = int(os.environ.get("LOCATION_POLL_SECONDS", 60))

    # Logging
    LOG_DIR: str = os.environ.get("LOG_DIR", "logs")
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")
    LOG_MAX_BYTES: int = int(os.environ.get("LOG_MAX_BYTES", 5 * 1024 * 1024))
    LOG_BACKUP_COUNT: int = int(os.environ.get("LOG_BACKUP_COUNT", 5))

# Single importable instance
settings = Config()
