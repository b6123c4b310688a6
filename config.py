"""Configuration module for Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '1') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')
    TESTING = False

    # Session Configuration (Production-safe defaults)
    SESSION_COOKIE_SECURE = os.getenv('SESSION_COOKIE_SECURE', 'false').lower() == 'true'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = os.getenv('SESSION_COOKIE_SAMESITE', 'Lax')
    PERMANENT_SESSION_LIFETIME = 43200  # 12 hours (one shift)

    # Database - Support multiple environment variable naming conventions
    # Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        # Try DB_* variables (Docker style)
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'multipos')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'multipos')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'multipos')

        DATABASE_URL = (
            f"postgresql+psycopg://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', 'false').lower() == 'true'

    # POS defaults (used until a store_config row exists)
    DEFAULT_TAX_RATE = os.getenv('DEFAULT_TAX_RATE', '16')  # percent
    DEFAULT_CURRENCY = os.getenv('DEFAULT_CURRENCY', 'MXN')
    DEFAULT_LANGUAGE = os.getenv('DEFAULT_LANGUAGE', 'es')
    LOW_STOCK_THRESHOLD = int(os.getenv('LOW_STOCK_THRESHOLD', '10'))

    # Business Information (for receipts)
    BUSINESS_NAME = os.getenv('BUSINESS_NAME', 'Mi Negocio')
    BUSINESS_ADDRESS = os.getenv('BUSINESS_ADDRESS', '')
    BUSINESS_PHONE = os.getenv('BUSINESS_PHONE', '')

    # Redis Cache Configuration
    REDIS_URL = os.getenv('REDIS_URL', 'redis://redis:6379/0')
    CACHE_ENABLED = os.getenv('CACHE_ENABLED', 'true').lower() == 'true'
    CACHE_DEFAULT_TTL = int(os.getenv('CACHE_DEFAULT_TTL', '60'))  # seconds
    CACHE_KEY_PREFIX = os.getenv('CACHE_KEY_PREFIX', 'multipos')

    # Exchange rates
    EXCHANGE_RATE_API_URL = os.getenv('EXCHANGE_RATE_API_URL', 'https://api.exchangerate-api.com/v4/latest')
    EXCHANGE_RATE_TTL = int(os.getenv('EXCHANGE_RATE_TTL', '3600'))  # 1 hour

    # Outbound HTTP
    HTTP_TIMEOUT = int(os.getenv('HTTP_TIMEOUT', '30'))

    # Voice ordering (Whisper transcription + chat completions, ElevenLabs TTS)
    OPENAI_API_KEY = os.getenv('OPENAI_API_KEY')
    OPENAI_API_URL = os.getenv('OPENAI_API_URL', 'https://api.openai.com/v1')
    OPENAI_CHAT_MODEL = os.getenv('OPENAI_CHAT_MODEL', 'gpt-4o-mini')
    OPENAI_TRANSCRIBE_MODEL = os.getenv('OPENAI_TRANSCRIBE_MODEL', 'whisper-1')
    ELEVENLABS_API_KEY = os.getenv('ELEVENLABS_API_KEY')
    ELEVENLABS_API_URL = os.getenv('ELEVENLABS_API_URL', 'https://api.elevenlabs.io/v1')

    # Menu digitization (LLM vision gateway)
    OPENROUTER_API_KEY = os.getenv('OPENROUTER_API_KEY')
    OPENROUTER_API_URL = os.getenv('OPENROUTER_API_URL', 'https://openrouter.ai/api/v1')
    OPENROUTER_MODEL = os.getenv('OPENROUTER_MODEL', 'anthropic/claude-3.5-sonnet')
    APP_URL = os.getenv('APP_URL', 'http://localhost:5000')

    # Mercado Pago Point (payment terminals)
    MERCADOPAGO_CLIENT_ID = os.getenv('MERCADOPAGO_CLIENT_ID')
    MERCADOPAGO_CLIENT_SECRET = os.getenv('MERCADOPAGO_CLIENT_SECRET')
    MERCADOPAGO_REDIRECT_URI = os.getenv('MERCADOPAGO_REDIRECT_URI')

    # Error tracking
    SENTRY_DSN = os.getenv('SENTRY_DSN')


class TestConfig(Config):
    """Configuration for the pytest suite (in-memory SQLite, no Redis)."""

    TESTING = True
    DEBUG = False
    ENV = 'testing'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ECHO = False
    CACHE_ENABLED = False
    DEFAULT_TAX_RATE = '16'
    OPENAI_API_KEY = 'test-openai-key'
    ELEVENLABS_API_KEY = 'test-elevenlabs-key'
    OPENROUTER_API_KEY = 'test-openrouter-key'
    MERCADOPAGO_CLIENT_ID = 'test-client-id'
    MERCADOPAGO_CLIENT_SECRET = 'test-client-secret'
    MERCADOPAGO_REDIRECT_URI = 'http://localhost/api/oauth/mercadopago/callback'
    SENTRY_DSN = None
