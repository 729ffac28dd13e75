"""MongoDB Client - Connection and Collection Management

One client per process. Tests swap `_database` for an in-memory database.
"""
import time
from typing import Any, Dict, Optional
from pymongo import MongoClient as PyMongoClient
from pymongo.database import Database
from pymongo.collection import Collection
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import ConnectionFailure

from ..config.settings import settings
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Global client instance
_client: Optional[PyMongoClient] = None
_database: Optional[Database] = None


def get_client() -> PyMongoClient:
    """Get or create MongoDB client"""
    global _client
    if _client is None:
        logger.info(f"Connecting to MongoDB: {settings.mongo_uri}")
        _client = PyMongoClient(
            settings.mongo_uri,
            serverSelectionTimeoutMS=5000,
            connectTimeoutMS=5000,
            socketTimeoutMS=30000,
            tz_aware=True,
        )
        # Test connection
        try:
            _client.admin.command("ping")
            logger.info("MongoDB connection successful")
        except ConnectionFailure as e:
            logger.error(f"MongoDB connection failed: {e}")
            raise
    return _client


def get_database() -> Database:
    """Get the application database"""
    global _database
    if _database is None:
        client = get_client()
        _database = client[settings.mongo_db]
        logger.info(f"Using database: {settings.mongo_db}")
    return _database


def get_collection(name: str) -> Collection:
    """Get a collection from the database"""
    db = get_database()
    return db[name]


def close_connection() -> None:
    """Close MongoDB connection"""
    global _client, _database
    if _client is not None:
        _client.close()
        _client = None
        _database = None
        logger.info("MongoDB connection closed")


def create_indexes() -> None:
    """Create all required indexes"""
    db = get_database()
    logger.info("Creating MongoDB indexes...")
    
    # Requests collection
    requests = db["requests"]
    requests.create_index("request_id", unique=True)
    requests.create_index("reference_number", unique=True)
    requests.create_index([("employee_service_no", ASCENDING), ("created_at", DESCENDING)])
    requests.create_index("out_location")
    requests.create_index("in_location")
    requests.create_index("status")
    
    # Status ledger - many rows per reference number
    statuses = db["statuses"]
    statuses.create_index("status_id", unique=True)
    statuses.create_index([("reference_number", ASCENDING), ("updated_at", DESCENDING)])
    statuses.create_index("request_id")
    for stage in ("EXECUTIVE", "VERIFIER", "DISPATCHER", "RECEIVER"):
        statuses.create_index(f"stages.{stage}.state")
    statuses.create_index("updated_at")
    
    # Status transitions (append-only)
    transitions = db["status_transitions"]
    transitions.create_index("transition_id", unique=True)
    transitions.create_index([("reference_number", ASCENDING), ("timestamp", ASCENDING)])
    transitions.create_index("correlation_id")
    
    # Directory users
    users = db["users"]
    users.create_index("service_no", unique=True)
    users.create_index([("role", ASCENDING), ("is_active", ASCENDING)])
    users.create_index("branches")
    
    # Notification outbox collection
    notification_outbox = db["notification_outbox"]
    notification_outbox.create_index("notification_id", unique=True)
    notification_outbox.create_index([("status", ASCENDING), ("next_retry_at", ASCENDING)])
    notification_outbox.create_index("reference_number")
    notification_outbox.create_index("locked_until")
    
    logger.info("MongoDB indexes created successfully")


def health_check() -> Dict[str, Any]:
    """Ping the server and report round-trip time for /health"""
    try:
        started = time.perf_counter()
        get_client().admin.command("ping")
        return {
            "status": "healthy",
            "database": settings.mongo_db,
            "ping_ms": round((time.perf_counter() - started) * 1000, 1)
        }
    except Exception as e:
        logger.error(f"MongoDB health check failed: {e}")
        return {
            "status": "unhealthy",
            "database": settings.mongo_db,
            "error": str(e)
        }
