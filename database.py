"""
Database connection and helpers

Connects to MongoDB using DATABASE_SERVICE_URL (privileged credentials) when it
is set, otherwise DATABASE_URL (anonymous credentials). Collections used:
categories, products, orders, profiles, recharge_codes, authuser.
"""

import os
import logging
from datetime import datetime, timezone
from typing import Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel
from pymongo import MongoClient

load_dotenv()

logger = logging.getLogger(__name__)

database_url = os.getenv("DATABASE_URL")
service_url = os.getenv("DATABASE_SERVICE_URL")
database_name = os.getenv("DATABASE_NAME")

_client = None
db = None

if (service_url or database_url) and database_name:
    _client = MongoClient(service_url or database_url)
    db = _client[database_name]

# Whether the connection carries the privileged credentials
write_enabled = bool(service_url)


def log_connection_status() -> None:
    """Report the connection setup; called once logging is configured."""
    if not service_url:
        logger.warning(
            "DATABASE_SERVICE_URL not set - using DATABASE_URL. "
            "Write operations may be rejected by the server."
        )
    if db is None:
        logger.error("Missing DATABASE_URL / DATABASE_NAME - database not available")


def create_document(collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a single document with timestamps and return its id as a string"""
    if db is None:
        raise Exception("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")

    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = data.copy()

    now = datetime.now(timezone.utc)
    data_dict["created_at"] = now
    data_dict["updated_at"] = now

    result = db[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None,
                  sort: Optional[list] = None, skip: int = 0):
    """Find documents in a collection"""
    if db is None:
        raise Exception("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")

    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if skip:
        cursor = cursor.skip(skip)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)
