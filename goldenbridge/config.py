"""
Golden Bridge Women
Per-environment settings for the app factory.

    create_app()             → APP_ENV, falling back to "development"
    create_app("testing")    → in-memory SQLite, fixed JWT secret, no rate limits

Everything deployment-specific comes from environment variables; the
programme rules (retention caps, invite lifetime, deadline notices) are
plain class attributes so tests can override them on ``app.config``.
"""

import os
import secrets

PROJECT_ROOT = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
LOCAL_SQLITE = "sqlite:///" + os.path.join(PROJECT_ROOT, "instance", "goldenbridge.db")


def env_database_url() -> str:
    """DATABASE_URL with the legacy ``postgres://`` scheme rewritten for SQLAlchemy 2."""
    url = os.getenv("DATABASE_URL", "")
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url


class Config:
    # Security
    SECRET_KEY = os.getenv("SECRET_KEY") or secrets.token_hex(32)
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
    JWT_ACCESS_EXPIRES = int(os.getenv("JWT_ACCESS_EXPIRES", "3600"))

    DEBUG = False
    TESTING = False
    LOG_LEVEL = os.getenv("LOG_LEVEL")

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True, "pool_recycle": 300}

    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")

    # Front-end base URL; invite links are <APP_ORIGIN>/signup?invite=<code>
    APP_ORIGIN = os.getenv("APP_ORIGIN", "http://localhost:5173")

    # Programme rules
    NOTIFICATION_RETENTION = 100    # per user, newest kept
    AUDIT_LOG_RETENTION = 1000      # whole log, newest kept
    INVITE_EXPIRY_DAYS = 30
    DEADLINE_NOTICE_DAYS = (7, 3, 1)
    NEEDS_ATTENTION_DAYS = 7


class DevelopmentConfig(Config):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = env_database_url() or LOCAL_SQLITE


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    SQLALCHEMY_ENGINE_OPTIONS = {}
    JWT_SECRET_KEY = "test-jwt-secret"
    RATELIMIT_ENABLED = False


class ProductionConfig(Config):
    SQLALCHEMY_DATABASE_URI = env_database_url() or None
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_timeout": 20,
    }

    def __init__(self):
        missing = [
            name for name, present in (
                ("DATABASE_URL", self.SQLALCHEMY_DATABASE_URI),
                ("SECRET_KEY", os.getenv("SECRET_KEY")),
            ) if not present
        ]
        if missing:
            raise RuntimeError(f"Production requires {', '.join(missing)} to be set")


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
