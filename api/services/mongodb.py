# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
MongoDB service layer with connection pooling and index management.
"""

import os
import logging
from typing import Dict, Optional, Any
from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError, PyMongoError

logger = logging.getLogger(__name__)

APPLICATIONS = "organization_applications"
OFFICIALS = "officials"
ASSIGNMENTS = "assignments"
AVAILABILITY_BLOCKS = "availability_blocks"
ATTACHMENTS = "attachments"
AUDIT_LOGS = "audit_logs"


class MongoDBService:
    """MongoDB connection holder shared by the repositories."""

    def __init__(self, connection_string: str = None, database_name: str = None):
        """Initialize MongoDB service with connection pooling."""
        self.connection_string = connection_string or os.getenv(
            'MONGODB_URI',
            'mongodb://localhost:27017/organizaciones_dev'
        )
        self.database_name = database_name or os.getenv('MONGODB_DATABASE', 'organizaciones_dev')
        self._client: Optional[MongoClient] = None
        self._database: Optional[Database] = None

        # Connection pool settings
        self.max_pool_size = int(os.getenv('MONGODB_MAX_POOL_SIZE', '10'))
        self.min_pool_size = int(os.getenv('MONGODB_MIN_POOL_SIZE', '1'))
        self.max_idle_time_ms = int(os.getenv('MONGODB_MAX_IDLE_TIME_MS', '30000'))
        self.server_selection_timeout_ms = int(os.getenv('MONGODB_SERVER_SELECTION_TIMEOUT_MS', '5000'))

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
                    serverSelectionTimeoutMS=self.server_selection_timeout_ms,
                    tz_aware=True,
                    retryWrites=True,
                    retryReads=True
                )
                # Test connection
                self._client.admin.command('ping')
                logger.info("MongoDB connection established successfully")
            except (ConnectionFailure, ServerSelectionTimeoutError) as e:
                logger.error(f"Failed to connect to MongoDB: {e}")
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
                'connection_pool_size': self.max_pool_size
            }
        except PyMongoError as e:
            logger.error(f"MongoDB health check failed: {e}")
            return {
                'status': 'unhealthy',
                'error': str(e),
                'database': self.database_name
            }

    # Index Management

    def create_indexes(self) -> None:
        """Create lookup and uniqueness indexes for all collections."""
        try:
            logger.info("Creating MongoDB indexes...")

            applications = self.get_collection(APPLICATIONS)
            applications.create_index([("status", ASCENDING), ("createdAt", DESCENDING)])
            applications.create_index([("creatorId", ASCENDING), ("createdAt", DESCENDING)])
            applications.create_index("ministroData.officialId")

            officials = self.get_collection(OFFICIALS)
            officials.create_index("rut", unique=True)
            officials.create_index("active")

            assignments = self.get_collection(ASSIGNMENTS)
            assignments.create_index([
                ("officialId", ASCENDING),
                ("scheduledDate", ASCENDING),
                ("scheduledTime", ASCENDING)
            ])
            assignments.create_index("organizationId")

            # One active block per official, date and time (null time = whole day)
            blocks = self.get_collection(AVAILABILITY_BLOCKS)
            blocks.create_index(
                [("officialId", ASCENDING), ("date", ASCENDING), ("time", ASCENDING)],
                unique=True,
                partialFilterExpression={"active": True},
                name="unique_active_block"
            )

            audit_logs = self.get_collection(AUDIT_LOGS)
            audit_logs.create_index([("entityId", ASCENDING), ("timestamp", DESCENDING)])
            audit_logs.create_index([("userId", ASCENDING), ("timestamp", DESCENDING)])
            audit_logs.create_index("traceId")

            logger.info("MongoDB indexes created successfully")

        except PyMongoError as e:
            logger.error(f"Failed to create MongoDB indexes: {e}")
            raise


def create_mongodb_service() -> MongoDBService:
    """Create a MongoDB service from environment configuration."""
    return MongoDBService(
        connection_string=os.getenv('MONGODB_URI'),
        database_name=os.getenv('MONGODB_DATABASE')
    )
