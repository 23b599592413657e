from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Loading priority (highest to lowest):
    1. Environment variables
    2. .env file
    3. Default values below
    """

    # Environment
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Application
    app_name: str = "Shortlink"
    app_version: str = "1.0.0"
    base_url: str = "http://127.0.0.1:8000"

    # Persistent store (shared by every execution context)
    store_backend: str = "memory"  # Options: "memory", "sql", "redis"
    store_sql_url: str = "sqlite:///./shortlink_store.db"
    redis_url: str = "redis://localhost:6379/0"
    store_channel: str = "shortlink:store-changes"
    store_poll_interval: float = 1.0  # Seconds between change polls

    # Store keys
    collection_key: str = "shortlink:urls:v2"
    legacy_collection_key: str = "shortlink:urls"
    session_key: str = "shortlink:session"
    event_log_key: str = "shortlink:events"
    event_log_max_entries: int = 1000  # oldest events are dropped beyond this

    # Short code generation
    short_code_strategy: str = "secure"  # Options: "random", "secure"
    short_code_length: int = 6
    max_generation_attempts: int = 10
    default_ttl_minutes: int = 30

    # Session renewal
    refresh_lead_seconds: int = 300  # Renew 5 minutes before expiry
    require_login: bool = True

    # Authentication boundary
    auth_backend: str = "memory"  # Options: "http", "memory"
    auth_base_url: str = "http://localhost:9000/auth"
    auth_timeout: float = 5.0
    auth_token_lifetime: int = 3600  # Seconds, memory backend only
    demo_user_email: str = "demo@example.com"
    demo_user_password: str = "demo-password"
    demo_user_name: str = "Demo User"
    demo_user_roll_no: str = "0000"

    # Geo lookup boundary
    geo_backend: str = "null"  # Options: "http", "null"
    geo_lookup_url: str = "https://ipapi.co/{ip}/json/"
    geo_lookup_timeout: float = 2.0

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Create settings instance
settings = Settings()
