"""
MongoDB connection settings.

``DatabaseConfig`` collects the ``MONGODB_*`` keys of a Flask config into the
keyword options PyMongo expects. The client is created lazily: PyMongo does
not connect until the first operation, so building it never blocks startup.
"""

from typing import Any, Dict, Mapping

import structlog
from pymongo import MongoClient

logger = structlog.get_logger(__name__)


class DatabaseConfig:
    """MongoDB connection and timeout settings for one application."""

    def __init__(self, config: Mapping[str, Any]):
        self.uri = config.get('MONGODB_URI', 'mongodb://localhost:27017')
        self.database = config.get('MONGODB_DATABASE', 'hospital_meals')
        self.operation_timeout = float(config.get('MONGODB_OPERATION_TIMEOUT', 5))
        self.pool_options = {
            'maxPoolSize': int(config.get('MONGODB_MAX_POOL_SIZE', 50)),
            'minPoolSize': int(config.get('MONGODB_MIN_POOL_SIZE', 5)),
            'serverSelectionTimeoutMS': int(config.get('MONGODB_SERVER_SELECTION_TIMEOUT_MS', 5000)),
            'connectTimeoutMS': int(config.get('MONGODB_CONNECT_TIMEOUT_MS', 10000)),
            'socketTimeoutMS': int(config.get('MONGODB_SOCKET_TIMEOUT_MS', 30000)),
            'retryWrites': False,
            'retryReads': False,
            'appname': config.get('APP_NAME', 'hospital-meals'),
        }

    def client_options(self) -> Dict[str, Any]:
        return {
            **self.pool_options,
            'w': 'majority',
        }

    def get_mongodb_client(self) -> MongoClient:
        """Create a PyMongo client with bounded pool and timeout settings."""
        options = self.client_options()
        client = MongoClient(self.uri, **options)
        logger.info(
            "PyMongo client created",
            database=self.database,
            max_pool_size=options['maxPoolSize'],
            server_selection_timeout_ms=options['serverSelectionTimeoutMS'],
        )
        return client
