"""
Flask application factory.

``create_app`` builds one application: configuration, structured logging,
CORS, rate limiting, the MongoDB store with its unique indexes, the write
orchestrator and query service, blueprints and error handlers.

Tests pass their own ``mongo_client`` (mongomock); everything else builds
one from ``MONGODB_*``.
"""

import time
from typing import Any, Optional

import structlog
from flask import Flask
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from pymongo import MongoClient

from hospital_meals.blueprints import register_all_blueprints
from hospital_meals.business.exceptions import create_flask_error_handlers
from hospital_meals.business.orchestrator import WriteOrchestrator
from hospital_meals.business.policies import unique_index_specs
from hospital_meals.business.queries import EntityQueryService
from hospital_meals.business.references import ReferenceResolver
from hospital_meals.config.database import DatabaseConfig
from hospital_meals.config.settings import get_config
from hospital_meals.data.exceptions import DatabaseException
from hospital_meals.data.mongodb import MongoDBManager
from hospital_meals.monitoring.logging import init_request_logging, setup_structured_logging

logger = structlog.get_logger(__name__)

EXTENSION_KEY = 'hospital_meals'


class FlaskApplicationFactory:
    """Builds configured Flask applications; one instance serves the process."""

    def create_application(self, config_name: Optional[str] = None,
                           mongo_client: Optional[MongoClient] = None,
                           **config_overrides: Any) -> Flask:
        creation_start_time = time.perf_counter()

        app = Flask(__name__.split('.')[0])
        config_class = self._configure_application(app, config_name, **config_overrides)

        setup_structured_logging(app)
        init_request_logging(app)
        config_class.init_app(app)

        self._initialize_flask_extensions(app)
        self._initialize_database_layer(app, mongo_client)
        register_all_blueprints(app)
        create_flask_error_handlers(app)

        logger.info(
            "Flask application created",
            config_class=config_class.__name__,
            debug=app.config.get('DEBUG', False),
            testing=app.config.get('TESTING', False),
            creation_time_ms=round((time.perf_counter() - creation_start_time) * 1000, 2),
        )
        return app

    def _configure_application(self, app: Flask, config_name: Optional[str],
                               **config_overrides: Any):
        config_class = get_config(config_name)
        app.config.from_object(config_class)
        if config_overrides:
            app.config.update(config_overrides)
            logger.info("Configuration overrides applied", overrides=sorted(config_overrides))
        app.json.sort_keys = app.config.get('JSON_SORT_KEYS', False)
        return config_class

    def _initialize_flask_extensions(self, app: Flask) -> None:
        CORS(app, **app.config['CORS_CONFIG'])

        # Limiter reads RATELIMIT_ENABLED, RATELIMIT_DEFAULT and RATELIMIT_STORAGE_URI
        limiter = Limiter(key_func=get_remote_address)
        limiter.init_app(app)

        logger.info(
            "Flask extensions initialized",
            cors_origins=app.config['CORS_CONFIG'].get('origins'),
            rate_limiting_enabled=app.config.get('RATELIMIT_ENABLED', True),
        )

    def _initialize_database_layer(self, app: Flask,
                                   mongo_client: Optional[MongoClient]) -> None:
        database_config = DatabaseConfig(app.config)
        client = mongo_client
        if client is None:
            client = database_config.get_mongodb_client()
        store = MongoDBManager(client, database_config.database,
                               operation_timeout=database_config.operation_timeout)

        try:
            store.ensure_indexes(unique_index_specs())
        except DatabaseException as exc:
            # The service still starts; writes fall back to the uniqueness pre-check
            logger.error("Index creation failed", error=exc.message, database=store.database_name)

        resolver = ReferenceResolver(store)
        app.extensions[EXTENSION_KEY] = {
            'mongodb': store,
            'orchestrator': WriteOrchestrator(store, resolver),
            'queries': EntityQueryService(
                store, resolver,
                default_page_size=app.config.get('DEFAULT_PAGE_SIZE', 10),
                max_page_size=app.config.get('MAX_PAGE_SIZE', 100),
            ),
        }


_application_factory = FlaskApplicationFactory()


def create_app(config_name: Optional[str] = None, mongo_client: Optional[MongoClient] = None,
               **config_overrides: Any) -> Flask:
    """
    Create the Flask application.

    Args:
        config_name: development, testing or production; defaults to FLASK_ENV
        mongo_client: Client to use instead of one built from MONGODB_URI
        **config_overrides: Values applied over the configuration class

    Examples:
        app = create_app('development')
        app = create_app('testing', mongo_client=mongomock.MongoClient())
    """
    return _application_factory.create_application(
        config_name=config_name,
        mongo_client=mongo_client,
        **config_overrides,
    )


def cleanup_application(app: Flask) -> None:
    """Close the MongoDB client held by ``app``."""
    extension = getattr(app, 'extensions', {}).get(EXTENSION_KEY)
    if extension:
        extension['mongodb'].close()
