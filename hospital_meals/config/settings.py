"""
Flask configuration classes.

Values are read from the environment, optionally seeded from a ``.env`` file
through python-dotenv. ``get_config`` selects the class for ``FLASK_ENV``.
"""

import os
from typing import Dict, List, Optional, Type

import structlog
from dotenv import load_dotenv

load_dotenv()

logger = structlog.get_logger(__name__)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ('true', '1', 'yes', 'on')


class BaseConfig:
    """Settings shared by every environment."""

    SECRET_KEY = os.getenv('SECRET_KEY', os.urandom(32).hex())

    APP_NAME = os.getenv('APP_NAME', 'Hospital Meal Management API')
    APP_VERSION = os.getenv('APP_VERSION', '1.0.0')
    FLASK_ENV = os.getenv('FLASK_ENV', 'development')
    DEBUG = False
    TESTING = False

    # Request bodies are small JSON documents
    MAX_CONTENT_LENGTH = int(os.getenv('MAX_CONTENT_LENGTH', '16384'))
    JSON_SORT_KEYS = False

    # MongoDB
    MONGODB_URI = os.getenv('MONGODB_URI', 'mongodb://localhost:27017')
    MONGODB_DATABASE = os.getenv('MONGODB_DATABASE', 'hospital_meals')
    MONGODB_OPERATION_TIMEOUT = float(os.getenv('MONGODB_OPERATION_TIMEOUT', '5'))
    MONGODB_SERVER_SELECTION_TIMEOUT_MS = int(os.getenv('MONGODB_SERVER_SELECTION_TIMEOUT_MS', '5000'))
    MONGODB_CONNECT_TIMEOUT_MS = int(os.getenv('MONGODB_CONNECT_TIMEOUT_MS', '10000'))
    MONGODB_SOCKET_TIMEOUT_MS = int(os.getenv('MONGODB_SOCKET_TIMEOUT_MS', '30000'))
    MONGODB_MAX_POOL_SIZE = int(os.getenv('MONGODB_MAX_POOL_SIZE', '50'))
    MONGODB_MIN_POOL_SIZE = int(os.getenv('MONGODB_MIN_POOL_SIZE', '5'))

    # Flask-CORS
    CORS_CONFIG = {
        'origins': os.getenv('CORS_ORIGINS', 'http://localhost:5173').split(','),
        'methods': ['GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS'],
        'allow_headers': ['Content-Type', 'Authorization', 'X-Request-ID'],
        'expose_headers': ['X-Request-ID'],
        'supports_credentials': True,
        'max_age': int(os.getenv('CORS_MAX_AGE', '86400')),
    }

    # Flask-Limiter reads the RATELIMIT_* keys directly
    RATELIMIT_ENABLED = _env_bool('RATELIMIT_ENABLED', 'true')
    RATELIMIT_DEFAULT = os.getenv('RATELIMIT_DEFAULT', '1000 per hour')
    RATELIMIT_STORAGE_URI = os.getenv('RATELIMIT_STORAGE_URI', 'memory://')
    RATELIMIT_HEADERS_ENABLED = True

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    LOG_FORMAT = os.getenv('LOG_FORMAT', 'json')

    # Listing
    DEFAULT_PAGE_SIZE = int(os.getenv('DEFAULT_PAGE_SIZE', '10'))
    MAX_PAGE_SIZE = int(os.getenv('MAX_PAGE_SIZE', '100'))

    @classmethod
    def init_app(cls, app) -> None:
        logger.info(
            "Configuration applied",
            config_class=cls.__name__,
            mongodb_database=app.config.get('MONGODB_DATABASE'),
        )


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'DEBUG')
    LOG_FORMAT = os.getenv('LOG_FORMAT', 'console')


class TestingConfig(BaseConfig):
    """Isolated database name, no rate limiting, quiet logs."""

    TESTING = True
    DEBUG = True
    MONGODB_DATABASE = os.getenv('MONGODB_TEST_DATABASE', 'hospital_meals_test')
    MONGODB_OPERATION_TIMEOUT = 2.0
    MONGODB_SERVER_SELECTION_TIMEOUT_MS = 2000
    RATELIMIT_ENABLED = False
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'WARNING')
    CORS_CONFIG = {
        **BaseConfig.CORS_CONFIG,
        'origins': '*',
        'supports_credentials': False,
    }


class ProductionConfig(BaseConfig):
    LOG_FORMAT = 'json'

    @classmethod
    def init_app(cls, app) -> None:
        issues = validate_configuration(app.config)
        if issues:
            for issue in issues:
                logger.error("Configuration issue", issue=issue)
            raise RuntimeError("Invalid production configuration: " + "; ".join(issues))
        super().init_app(app)


config_map: Dict[str, Type[BaseConfig]] = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
}


def get_config(environment: Optional[str] = None) -> Type[BaseConfig]:
    """
    Get the configuration class for ``environment`` (defaults to FLASK_ENV).

    Raises:
        ValueError: If the environment is not supported
    """
    if environment is None:
        environment = os.getenv('FLASK_ENV', 'development')

    environment = environment.lower()
    if environment not in config_map:
        raise ValueError(
            f"Unsupported environment '{environment}'. "
            f"Supported environments: {list(config_map.keys())}"
        )
    return config_map[environment]


def validate_configuration(config) -> List[str]:
    """Return a list of problems that make ``config`` unfit for production."""
    issues = []

    if not os.getenv('SECRET_KEY'):
        issues.append("SECRET_KEY must be set explicitly")
    elif len(config.get('SECRET_KEY', '')) < 32:
        issues.append("SECRET_KEY should be at least 32 characters long")

    if not os.getenv('MONGODB_URI'):
        issues.append("MONGODB_URI must be set explicitly")

    if config.get('MONGODB_OPERATION_TIMEOUT', 0) <= 0:
        issues.append("MONGODB_OPERATION_TIMEOUT must be positive")

    if config.get('MAX_PAGE_SIZE', 0) < config.get('DEFAULT_PAGE_SIZE', 0):
        issues.append("MAX_PAGE_SIZE must not be smaller than DEFAULT_PAGE_SIZE")

    return issues
