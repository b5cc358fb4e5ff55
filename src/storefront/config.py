from pydantic_settings import BaseSettings
from pydantic import Field

DEFAULT_SESSION_SECRET = "storefront-development-secret-replace-in-production"


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field("sqlite:///storefront.db", description="SQLAlchemy database URL")
    redis_url: str = Field("redis://localhost:6379/0", description="Redis URL for sessions")
    api_title: str = Field("Storefront API", description="OpenAPI title")
    host: str = Field("127.0.0.1", description="Address the HTTP server binds to")
    port: int = Field(8000, description="Port the HTTP server listens on")

    session_backend: str = Field("memory", description="Session store: memory or redis")
    session_secret: str = Field(DEFAULT_SESSION_SECRET, description="Key used to sign session tokens")
    session_algorithm: str = Field("HS256", description="Session token signing algorithm")
    session_ttl_days: int = Field(30, description="Session lifetime in days")
    session_cookie_name: str = Field("session", description="Session cookie name")
    session_cookie_secure: bool = Field(False, description="Send the cookie over HTTPS only")

    rate_limit_enabled: bool = Field(True, description="Apply rate limits to auth endpoints")

    mail_relay_url: str = Field(
        "https://api.emailjs.com/api/v1.0/email/send", description="Mail relay send endpoint"
    )
    mail_service_id: str | None = Field(None, description="Mail relay service id")
    mail_template_id: str | None = Field(None, description="Template for admin notifications")
    mail_autoreply_template_id: str | None = Field(
        None, description="Template for the sender auto-reply"
    )
    mail_public_key: str | None = Field(None, description="Mail relay public key")
    mail_timeout: int = Field(10, description="Mail relay request timeout in seconds")

    admin_email: str | None = Field(None, description="Bootstrap admin email")
    admin_password: str | None = Field(None, description="Bootstrap admin password")
    admin_name: str = Field("Administrator", description="Bootstrap admin display name")


settings = Settings()
