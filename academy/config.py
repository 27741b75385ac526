import os
from datetime import timedelta
from dotenv import load_dotenv

load_dotenv()


def _flag(name, default="False"):
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _database_url():
    url = os.getenv("DATABASE_URL", "sqlite:///academy.db")
    # Heroku style URLs are rejected by SQLAlchemy 1.4+
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "default-secret")
    FLASK_ENV = os.getenv("FLASK_ENV", "development")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    SITE_URL = os.getenv("SITE_URL", "http://localhost:3000")

    # Database
    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Auth
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "jwt-secret")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=int(os.getenv("JWT_ACCESS_HOURS", 12)))
    INVITE_TOKEN_EXPIRES = timedelta(days=int(os.getenv("INVITE_TOKEN_DAYS", 7)))
    MIN_PASSWORD_LENGTH = 6
    ADMIN_EMAILS = [
        e.strip().lower() for e in os.getenv("ADMIN_EMAILS", "").split(",") if e.strip()
    ]

    # Mail Configuration
    MAIL_SERVER = os.getenv("MAIL_SERVER", "smtp.zoho.com")
    MAIL_PORT = int(os.getenv("MAIL_PORT", 587))
    MAIL_USE_TLS = _flag("MAIL_USE_TLS", "True")
    MAIL_USE_SSL = _flag("MAIL_USE_SSL")
    MAIL_USERNAME = os.getenv("MAIL_USERNAME")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", "Academy <welcome@academy.local>")
    MAIL_ADMIN_SENDER = os.getenv("MAIL_ADMIN_SENDER", "Academy <admin@academy.local>")
    # Stands in for "provider API key configured"
    MAIL_ENABLED = bool(MAIL_USERNAME)

    # Object storage
    AWS_ACCESS_KEY_ID = os.getenv("AWS_ACCESS_KEY_ID")
    AWS_SECRET_ACCESS_KEY = os.getenv("AWS_SECRET_ACCESS_KEY")
    AWS_REGION = os.getenv("AWS_REGION", "us-east-2")
    AWS_S3_BUCKET_NAME = os.getenv("AWS_S3_BUCKET_NAME")
    AWS_S3_ENDPOINT_URL = os.getenv("AWS_S3_ENDPOINT_URL")
    AWS_CLOUDFRONT_DOMAIN = os.getenv("AWS_CLOUDFRONT_DOMAIN")
    VIDEO_FOLDER = os.getenv("VIDEO_FOLDER", "course-videos")
    THUMBNAIL_FOLDER = os.getenv("THUMBNAIL_FOLDER", "thumbnails")
    MAX_UPLOAD_BYTES = 10 * 1024 * 1024 * 1024

    # Learning
    DEFAULT_PASSING_SCORE = 70


class DevConfig(Config):
    DEBUG = True
    TESTING = False


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    JWT_SECRET_KEY = "test-jwt-secret"
    MAIL_ENABLED = True
    MAIL_SUPPRESS_SEND = True
    MAIL_DEFAULT_SENDER = "Academy <welcome@academy.test>"
    MAIL_ADMIN_SENDER = "Academy <admin@academy.test>"
    AWS_S3_BUCKET_NAME = "academy-test"
    ADMIN_EMAILS = ["founder@academy.test"]
    SITE_URL = "http://school.test"


class ProdConfig(Config):
    DEBUG = False


config_dict = {
    "development": DevConfig,
    "testing": TestConfig,
    "production": ProdConfig,
}
