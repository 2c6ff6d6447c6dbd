"""Application configuration."""
import sys
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "postgresql://visita_user:visita_pass@db:5432/visita_db"
    SECRET_KEY: str = "dev-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    JWT_ISSUER: str = ""
    JWT_AUDIENCE: str = ""

    # Environment configuration
    ENVIRONMENT: str = "development"  # "development" or "production"
    LOG_LEVEL: str = "INFO"

    # CORS configuration - comma-separated origins
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:5174"

    # Notification channels - comma-separated: in_app, email
    NOTIFICATION_CHANNELS: str = "in_app"

    # SMTP settings for the email channel
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    FROM_EMAIL: str = ""

    class Config:
        env_file = ".env"

    def get_cors_origins(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    def get_notification_channels(self) -> list[str]:
        """Parse NOTIFICATION_CHANNELS into a list."""
        return [c.strip().lower() for c in self.NOTIFICATION_CHANNELS.split(",") if c.strip()]

    def validate_production_settings(self) -> None:
        """Validate settings for production environment.

        Raises SystemExit if critical security settings are misconfigured.
        """
        if self.ENVIRONMENT == "production":
            if self.SECRET_KEY == "dev-secret-key-change-in-production":
                print("FATAL: SECRET_KEY must be changed in production!", file=sys.stderr)
                print("Set a secure random SECRET_KEY environment variable.", file=sys.stderr)
                sys.exit(1)

            if "email" in self.get_notification_channels() and not self.SMTP_USER:
                print("WARNING: email notifications enabled without SMTP_USER!", file=sys.stderr)
                print("Reviewer emails will be skipped until SMTP is configured.", file=sys.stderr)


settings = Settings()
# Validate on startup
settings.validate_production_settings()
