"""
MongoDB store manager.

Thin wrapper over one PyMongo database. Every call:

- runs inside ``pymongo.timeout`` so a round trip never outlives the
  configured operation timeout,
- records its duration in Prometheus and logs at debug level,
- maps PyMongo errors onto ``hospital_meals.data.exceptions``.

Nothing here retries. A failed call is raised to the caller immediately.
"""

import re
import time
from functools import wraps
from typing import Any, Dict, Iterable, List, Mapping, NamedTuple, Optional, Sequence, Tuple

import pymongo
import structlog
from bson import ObjectId
from pymongo import MongoClient, ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from hospital_meals.data.exceptions import DatabaseOperationType, handle_database_error
from hospital_meals.monitoring.metrics import DATABASE_OPERATION_DURATION
from hospital_meals.utils.datetime_utils import utc_now

logger = structlog.get_logger(__name__)

OBJECT_ID_PATTERN = re.compile(r'[0-9a-fA-F]{24}')

SortSpec = Sequence[Tuple[str, int]]


def is_valid_object_id(value: Any) -> bool:
    """True for ObjectIds and 24 character hex strings only."""
    if isinstance(value, ObjectId):
        return True
    return isinstance(value, str) and bool(OBJECT_ID_PATTERN.fullmatch(value))


class IndexSpec(NamedTuple):
    collection: str
    field: str
    unique: bool = False


def store_operation(operation: DatabaseOperationType):
    """
    Decorate a manager method taking ``collection_name`` as first argument.

    Applies the operation timeout, duration metric and error mapping.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(self, collection_name, *args, **kwargs):
            start_time = time.perf_counter()
            try:
                with pymongo.timeout(self.operation_timeout):
                    result = func(self, collection_name, *args, **kwargs)
            except PyMongoError as e:
                raise handle_database_error(
                    e, operation, self.database_name, collection_name,
                    timeout_duration=self.operation_timeout,
                ) from e
            finally:
                duration = time.perf_counter() - start_time
                DATABASE_OPERATION_DURATION.labels(
                    operation=func.__name__, collection=collection_name
                ).observe(duration)

            logger.debug(
                "Database operation completed",
                operation=func.__name__,
                collection=collection_name,
                duration_ms=round(duration * 1000, 2),
            )
            return result
        return wrapper
    return decorator


class MongoDBManager:
    """
    Synchronous MongoDB operations for the meal management collections.

    Timestamps: ``insert_one`` sets ``createdAt`` and ``updatedAt``;
    ``find_one_and_update`` refreshes ``updatedAt`` on every ``$set``.
    """

    def __init__(self, client: MongoClient, database_name: str, operation_timeout: float = 5.0):
        self.client = client
        self.database_name = database_name
        self.database = client[database_name]
        self.operation_timeout = operation_timeout

        logger.info(
            "MongoDB manager initialized",
            database=database_name,
            operation_timeout=operation_timeout,
        )

    def get_collection(self, collection_name: str) -> Collection:
        return self.database[collection_name]

    @store_operation(DatabaseOperationType.INSERT)
    def insert_one(self, collection_name: str, document: Dict[str, Any]) -> Dict[str, Any]:
        """Insert ``document`` and return it with ``_id`` and timestamps set."""
        now = utc_now()
        document = dict(document)
        document.setdefault('createdAt', now)
        document.setdefault('updatedAt', now)

        result = self.get_collection(collection_name).insert_one(document)
        document['_id'] = result.inserted_id
        return document

    @store_operation(DatabaseOperationType.FIND)
    def find_one(self, collection_name: str, filter_dict: Mapping[str, Any],
                 projection: Optional[Iterable[str]] = None) -> Optional[Dict[str, Any]]:
        return self.get_collection(collection_name).find_one(
            filter_dict, projection=_projection(projection)
        )

    def find_by_id(self, collection_name: str, object_id: ObjectId,
                   projection: Optional[Iterable[str]] = None) -> Optional[Dict[str, Any]]:
        return self.find_one(collection_name, {'_id': object_id}, projection)

    @store_operation(DatabaseOperationType.FIND)
    def find_many(self, collection_name: str, filter_dict: Mapping[str, Any],
                  projection: Optional[Iterable[str]] = None, sort: Optional[SortSpec] = None,
                  skip: int = 0, limit: int = 0) -> List[Dict[str, Any]]:
        cursor = self.get_collection(collection_name).find(
            filter_dict, projection=_projection(projection)
        )
        if sort:
            cursor = cursor.sort(list(sort))
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)

    @store_operation(DatabaseOperationType.COUNT)
    def count_documents(self, collection_name: str, filter_dict: Mapping[str, Any]) -> int:
        return self.get_collection(collection_name).count_documents(filter_dict)

    @store_operation(DatabaseOperationType.UPDATE)
    def find_one_and_update(self, collection_name: str, filter_dict: Mapping[str, Any],
                            set_fields: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        """Apply ``$set`` to the first match and return the updated document."""
        update = {'$set': {**set_fields, 'updatedAt': utc_now()}}
        return self.get_collection(collection_name).find_one_and_update(
            filter_dict, update, return_document=ReturnDocument.AFTER
        )

    @store_operation(DatabaseOperationType.DELETE)
    def find_one_and_delete(self, collection_name: str,
                            filter_dict: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        """Delete the first match and return the document as it was."""
        return self.get_collection(collection_name).find_one_and_delete(filter_dict)

    def ensure_indexes(self, specs: Iterable[IndexSpec]) -> List[str]:
        created = []
        for spec in specs:
            created.append(self._create_index(spec.collection, spec.field, spec.unique))
        logger.info("Indexes ensured", indexes=created)
        return created

    @store_operation(DatabaseOperationType.INDEX)
    def _create_index(self, collection_name: str, field: str, unique: bool) -> str:
        return self.get_collection(collection_name).create_index(
            [(field, pymongo.ASCENDING)], unique=unique
        )

    def ping(self) -> Dict[str, Any]:
        start_time = time.perf_counter()
        try:
            with pymongo.timeout(self.operation_timeout):
                self.database.command('ping')
        except PyMongoError as e:
            raise handle_database_error(
                e, DatabaseOperationType.PING, self.database_name,
                timeout_duration=self.operation_timeout,
            ) from e
        return {
            'status': 'healthy',
            'database': self.database_name,
            'response_time_ms': round((time.perf_counter() - start_time) * 1000, 2),
        }

    def close(self) -> None:
        self.client.close()
        logger.info("MongoDB client closed", database=self.database_name)


def _projection(fields: Optional[Iterable[str]]) -> Optional[Dict[str, int]]:
    if fields is None:
        return None
    return {field: 1 for field in fields}
