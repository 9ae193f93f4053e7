"""Configuration module for Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '0') == '1'
    TESTING = False

    # Database - Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'pos')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'pos')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'pos')

        DATABASE_URL = (
            f"postgresql://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', 'false').lower() == 'true'
    DB_CREATE_ALL = os.getenv('DB_CREATE_ALL', 'false').lower() == 'true'
    DB_POOL_SIZE = int(os.getenv('DB_POOL_SIZE', '10'))
    DB_MAX_OVERFLOW = int(os.getenv('DB_MAX_OVERFLOW', '20'))

    # Refunds: 'clamp' silently corrects out-of-range quantities, 'reject' returns 400
    REFUND_CLAMP_POLICY = os.getenv('REFUND_CLAMP_POLICY', 'clamp')

    # Reports
    REPORT_TIMEZONE = os.getenv('REPORT_TIMEZONE', 'America/Toronto')
    CASH_VARIANCE_THRESHOLD = os.getenv('CASH_VARIANCE_THRESHOLD', '5.00')
    PEAK_HOUR_RATIO = os.getenv('PEAK_HOUR_RATIO', '0.80')

    # Business Information (receipt fallbacks when the business row is incomplete)
    BUSINESS_NAME = os.getenv('BUSINESS_NAME', 'Your Business Name')
    BUSINESS_ADDRESS = os.getenv('BUSINESS_ADDRESS', '123 Main St')
    BUSINESS_CITY = os.getenv('BUSINESS_CITY', 'Your City')
    BUSINESS_PROVINCE = os.getenv('BUSINESS_PROVINCE', 'ON')
    BUSINESS_POSTAL_CODE = os.getenv('BUSINESS_POSTAL_CODE', 'N1A 1A1')
    BUSINESS_PHONE = os.getenv('BUSINESS_PHONE', '(555) 123-4567')
    BUSINESS_EMAIL = os.getenv('BUSINESS_EMAIL', 'hello@yourbusiness.com')
    BUSINESS_TAX_NUMBER = os.getenv('BUSINESS_TAX_NUMBER', 'HST#123456789')

    # Email configuration (digital receipts)
    MAIL_SERVER = os.getenv('SMTP_HOST', 'smtp.gmail.com')
    MAIL_PORT = int(os.getenv('SMTP_PORT', 587))
    MAIL_USE_TLS = True
    MAIL_USE_SSL = False
    MAIL_USERNAME = os.getenv('SMTP_USER') or ''
    MAIL_PASSWORD = os.getenv('SMTP_PASSWORD') or ''
    MAIL_DEFAULT_SENDER = (
        os.getenv('SMTP_FROM')
        or MAIL_USERNAME
        or 'no-reply@localhost'
    )
    MAIL_SUPPRESS_SEND = os.getenv('MAIL_SUPPRESS_SEND', 'false').lower() == 'true'


class TestConfig(Config):
    """Configuration used by the test suite (in-memory SQLite)."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ECHO = False
    DB_CREATE_ALL = True
    MAIL_SUPPRESS_SEND = True
    REFUND_CLAMP_POLICY = 'clamp'
    REPORT_TIMEZONE = 'America/Toronto'
