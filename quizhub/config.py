"""
Configuration module for the application.
All configuration values are read from environment variables
(a .env file is loaded by the application factory).
"""
import os
import secrets
import warnings


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name, "")
    return int(value) if value else default


def _bool_env(name: str, default: bool = False) -> bool:
    value = os.getenv(name, "")
    return value.lower() == "true" if value else default


class Config:
    """Application configuration loaded from environment variables."""

    def __init__(self):
        """Initialize configuration from environment variables."""
        # Flask Configuration
        self.SECRET_KEY: str = os.getenv("SECRET_KEY", "")
        self.FLASK_ENV: str = os.getenv("FLASK_ENV", "")
        self.FLASK_DEBUG: bool = _bool_env("FLASK_DEBUG")

        # Generate a development SECRET_KEY if not set and in development mode
        if not self.SECRET_KEY and self.FLASK_ENV != "production":
            self.SECRET_KEY = secrets.token_urlsafe(32)
            warnings.warn(
                "SECRET_KEY not set. Generated a temporary key for development. "
                "Set SECRET_KEY in your .env file for production!",
                UserWarning
            )

        # Database Configuration
        self.DATABASE_URL: str = os.getenv("DATABASE_URL", "")
        self.DB_USER: str = os.getenv("DB_USER", "")
        self.DB_PASSWORD: str = os.getenv("DB_PASSWORD", "")
        self.DB_HOST: str = os.getenv("DB_HOST", "")
        self.DB_PORT: str = os.getenv("DB_PORT", "")
        self.DB_NAME: str = os.getenv("DB_NAME", "")

        # Session Configuration
        self.SESSION_COOKIE_SECURE: bool = _bool_env("SESSION_COOKIE_SECURE")
        self.SESSION_COOKIE_HTTPONLY: bool = _bool_env("SESSION_COOKIE_HTTPONLY", True)
        self.SESSION_COOKIE_SAMESITE: str = os.getenv("SESSION_COOKIE_SAMESITE", "Lax")

        # SQLAlchemy Configuration
        self.SQLALCHEMY_TRACK_MODIFICATIONS: bool = False
        self.SQLALCHEMY_ECHO: bool = _bool_env("SQLALCHEMY_ECHO")

        # Lifecycle scheduler
        self.SCHEDULER_ENABLED: bool = _bool_env("SCHEDULER_ENABLED")
        self.SCHEDULER_INTERVAL_SECONDS: int = _int_env("SCHEDULER_INTERVAL_SECONDS", 60)
        self.SCHEDULER_QUIZ_TIMEOUT_SECONDS: int = _int_env("SCHEDULER_QUIZ_TIMEOUT_SECONDS", 10)

        # Attempts
        self.ATTEMPT_ABANDON_GRACE_MINUTES: int = _int_env("ATTEMPT_ABANDON_GRACE_MINUTES", 30)
        self.SUBMISSION_GRACE_SECONDS: int = _int_env("SUBMISSION_GRACE_SECONDS", 5)

        # Pass thresholds (percent). Analytics and the result page are
        # configured separately.
        self.ANALYTICS_PASS_PERCENTAGE: int = _int_env("ANALYTICS_PASS_PERCENTAGE", 33)
        self.RESULT_PASS_PERCENTAGE: int = _int_env("RESULT_PASS_PERCENTAGE", 40)

        # Quiz authoring
        self.ACCESS_KEY_LENGTH: int = _int_env("ACCESS_KEY_LENGTH", 5)
        self.MIN_QUESTION_TIME_LIMIT: int = _int_env("MIN_QUESTION_TIME_LIMIT", 10)

        # Anonymous access rate limiting
        self.ACCESS_RATE_LIMIT: int = _int_env("ACCESS_RATE_LIMIT", 10)
        self.ACCESS_RATE_WINDOW_SECONDS: int = _int_env("ACCESS_RATE_WINDOW_SECONDS", 60)

    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        """Database URI: DATABASE_URL if set, otherwise MySQL from the DB_* values."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"mysql+pymysql://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    def validate(self) -> None:
        """
        Validate required configuration values.
        Only enforces SECRET_KEY in production environment.
        """
        if not self.SECRET_KEY:
            if self.FLASK_ENV == "production":
                raise ValueError(
                    "SECRET_KEY environment variable is required in production. "
                    "Set it in your .env file or environment variables."
                )
        if self.SCHEDULER_INTERVAL_SECONDS <= 0:
            raise ValueError("SCHEDULER_INTERVAL_SECONDS must be positive")


# Global config instance - will be re-initialized after load_dotenv()
config = Config()
