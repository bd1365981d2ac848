# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
MongoDB service layer with connection pooling and bounded call timeouts.
"""

import os
import logging
from datetime import datetime, timezone
from typing import List, Dict, Optional, Any
from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import (
    ConnectionFailure,
    ServerSelectionTimeoutError,
    DuplicateKeyError
)
from bson import ObjectId

logger = logging.getLogger(__name__)

BENEFICIARIES = "beneficiaries"
CREDENTIALS = "beneficiary_credentials"
PACKAGES = "packages"
AUDIT_LOGS = "audit_logs"


def _to_public(document: Optional[Dict]) -> Optional[Dict]:
    """Expose the stored _id as a string id."""
    if document is not None and "_id" in document:
        document["id"] = str(document.pop("_id"))
    return document


class MongoDBService:
    """MongoDB service with connection pooling and an explicit timeout policy."""

    def __init__(self, connection_string: str = None, database_name: str = None, timeout_ms: int = None):
        """Initialize MongoDB service with connection pooling."""
        self.connection_string = connection_string or os.getenv(
            'MONGODB_URI',
            'mongodb://localhost:27017/beneficiary_portal_dev'
        )
        self.database_name = database_name or os.getenv('MONGODB_DATABASE', 'beneficiary_portal_dev')
        self._client: Optional[MongoClient] = None
        self._database: Optional[Database] = None

        # Connection pool settings
        self.max_pool_size = int(os.getenv('MONGODB_MAX_POOL_SIZE', '10'))
        self.min_pool_size = int(os.getenv('MONGODB_MIN_POOL_SIZE', '1'))
        self.max_idle_time_ms = int(os.getenv('MONGODB_MAX_IDLE_TIME_MS', '30000'))

        # Every backend call is bounded; a hung server surfaces as a timeout error
        self.timeout_ms = timeout_ms or int(os.getenv('BACKEND_TIMEOUT_MS', '10000'))

        logger.info(f"MongoDB service initialized for database: {self.database_name}")

    @property
    def client(self) -> MongoClient:
        """Get MongoDB client with connection pooling."""
        if self._client is None:
            try:
                self._client = MongoClient(
                    self.connection_string,
                    maxPoolSize=self.max_pool_size,
                    minPoolSize=self.min_pool_size,
                    maxIdleTimeMS=self.max_idle_time_ms,
                    serverSelectionTimeoutMS=self.timeout_ms,
                    connectTimeoutMS=self.timeout_ms,
                    socketTimeoutMS=self.timeout_ms,
                    tz_aware=True,
                    retryWrites=True,
                    retryReads=True
                )
                # Test connection
                self._client.admin.command('ping')
                logger.info("MongoDB connection established successfully")
            except (ConnectionFailure, ServerSelectionTimeoutError) as e:
                logger.error(f"Failed to connect to MongoDB: {e}")
                self._client = None
                raise

        return self._client

    @property
    def database(self) -> Database:
        """Get MongoDB database."""
        if self._database is None:
            self._database = self.client[self.database_name]
        return self._database

    def get_collection(self, collection_name: str) -> Collection:
        """Get MongoDB collection."""
        return self.database[collection_name]

    def close_connection(self) -> None:
        """Close MongoDB connection."""
        if self._client:
            self._client.close()
            self._client = None
            self._database = None
            logger.info("MongoDB connection closed")

    def health_check(self) -> Dict[str, Any]:
        """Check MongoDB connection health."""
        try:
            result = self.client.admin.command('ping')
            server_info = self.client.server_info()

            return {
                'status': 'healthy',
                'ping': result.get('ok') == 1,
                'version': server_info.get('version'),
                'database': self.database_name,
                'timeout_ms': self.timeout_ms
            }
        except Exception as e:
            logger.error(f"MongoDB health check failed: {e}")
            return {
                'status': 'unhealthy',
                'error': str(e),
                'database': self.database_name
            }

    def _add_timestamps(self, document: Dict, is_update: bool = False) -> Dict:
        """Add creation and update timestamps to document."""
        now = datetime.now(timezone.utc)

        if not is_update:
            document.setdefault("createdAt", now)

        document["updatedAt"] = now

        return document

    # CRUD operations

    def create(self, collection: str, document: Dict) -> str:
        """Insert a document, using its "id" field as _id when present."""
        try:
            document = self._add_timestamps(dict(document))

            if "id" in document:
                document["_id"] = document.pop("id")
            elif "_id" not in document:
                document["_id"] = str(ObjectId())

            result = self.get_collection(collection).insert_one(document)

            logger.info(f"Created document in {collection}: {result.inserted_id}")
            return str(result.inserted_id)

        except DuplicateKeyError as e:
            logger.error(f"Duplicate key error in {collection}: {e}")
            raise ValueError("Document with this identifier already exists")
        except Exception as e:
            logger.error(f"Failed to create document in {collection}: {e}")
            raise

    def find_one(self, collection: str, filters: Dict) -> Optional[Dict]:
        """Find a single document matching the filters."""
        try:
            document = self.get_collection(collection).find_one(filters)

            if document:
                logger.debug(f"Found document in {collection} for {list(filters)}")
            else:
                logger.debug(f"No document in {collection} for {list(filters)}")

            return _to_public(document)

        except Exception as e:
            logger.error(f"Failed to find document in {collection}: {e}")
            raise

    def find(self, collection: str, filters: Dict, sort_by: Optional[str] = None,
             sort_order: int = ASCENDING) -> List[Dict]:
        """Find all documents matching the filters."""
        try:
            cursor = self.get_collection(collection).find(filters)
            if sort_by:
                cursor = cursor.sort(sort_by, sort_order)

            documents = [_to_public(doc) for doc in cursor]

            logger.debug(f"Found {len(documents)} documents in {collection}")
            return documents

        except Exception as e:
            logger.error(f"Failed to find documents in {collection}: {e}")
            raise

    def update_fields(self, collection: str, filters: Dict, updates: Dict) -> bool:
        """Set fields on the first document matching the filters."""
        try:
            updates = self._add_timestamps(dict(updates), is_update=True)

            result = self.get_collection(collection).update_one(filters, {"$set": updates})

            if result.matched_count > 0:
                logger.info(f"Updated document in {collection}")
                return True

            logger.warning(f"No document matched update in {collection}")
            return False

        except Exception as e:
            logger.error(f"Failed to update document in {collection}: {e}")
            raise

    def delete_one(self, collection: str, filters: Dict) -> bool:
        """Delete the first document matching the filters."""
        try:
            result = self.get_collection(collection).delete_one(filters)

            if result.deleted_count > 0:
                logger.warning(f"Deleted document in {collection}")
                return True

            logger.warning(f"No document deleted in {collection}")
            return False

        except Exception as e:
            logger.error(f"Failed to delete document in {collection}: {e}")
            raise

    # Index management

    def create_indexes(self) -> None:
        """Create uniqueness and lookup indexes for the portal collections."""
        try:
            logger.info("Creating MongoDB indexes...")

            beneficiaries = self.get_collection(BENEFICIARIES)
            beneficiaries.create_index("nationalId", unique=True)
            beneficiaries.create_index("organizationId")

            # At most one credential per beneficiary
            credentials = self.get_collection(CREDENTIALS)
            credentials.create_index("beneficiaryId", unique=True)
            credentials.create_index("nationalId", unique=True)

            packages = self.get_collection(PACKAGES)
            packages.create_index([("beneficiaryId", ASCENDING), ("status", ASCENDING)])

            audit_logs = self.get_collection(AUDIT_LOGS)
            audit_logs.create_index([("timestamp", DESCENDING)])
            audit_logs.create_index([("subjectId", ASCENDING), ("timestamp", DESCENDING)])
            audit_logs.create_index("traceId")

            logger.info("MongoDB indexes created successfully")

        except Exception as e:
            logger.error(f"Failed to create MongoDB indexes: {e}")
            raise
