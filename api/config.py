"""
Environment-aware configuration.
Security keys, JWT lifetimes, role conventions, CORS and env flags.
The database URL is read by DBStorage (DATABASE_URL).
"""
import os
from dotenv import load_dotenv

load_dotenv()  # Read .env if present


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")  # Set a strong key in production
    DEBUG = False
    TESTING = False
    # CORS: in dev we usually allow '*', in prod supply a comma-separated list in env
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    APP_ENV = os.getenv("APP_ENV", "dev")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # jwt configuration; an empty secret stops the app from starting
    JWT_SECRET = os.getenv("JWT_SECRET")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_ISSUER = os.getenv("JWT_ISSUER", "securityauthapi")
    JWT_AUDIENCE = os.getenv("JWT_AUDIENCE", "securityauthclient")
    JWT_ACCESS_TOKEN_MINUTES = int(os.getenv("JWT_ACCESS_TOKEN_MINUTES", "60"))
    JWT_REFRESH_TOKEN_DAYS = int(os.getenv("JWT_REFRESH_TOKEN_DAYS", "7"))

    # role conventions
    ADMIN_ROLE_NAME = os.getenv("ADMIN_ROLE_NAME", "admin")
    DEFAULT_ROLE_NAME = os.getenv("DEFAULT_ROLE_NAME", "user")
    ADMIN_REDIRECT_URL = os.getenv("ADMIN_REDIRECT_URL", "/admin/persons")
    DEFAULT_REDIRECT_URL = os.getenv("DEFAULT_REDIRECT_URL", "/admin/role-users")


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    # In dev, propagate exceptions so our error handler has full context
    PROPAGATE_EXCEPTIONS = True
    JWT_SECRET = os.getenv("JWT_SECRET", "dev-jwt-secret-change-me-0123456789abcdef")


class TestingConfig(BaseConfig):
    TESTING = True
    JWT_SECRET = "test-jwt-secret-0123456789abcdef0123456789"


class ProductionConfig(BaseConfig):
    DEBUG = False


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/test/prod).
    """
    env = (name or os.getenv("APP_ENV", "dev")).lower()
    if env in ["prod", "production"]:
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig
