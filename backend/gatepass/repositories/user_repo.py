"""User Repository - Data access for directory users"""
import re
from typing import Any, Dict, List, Optional, Sequence
from pymongo.collection import Collection
from pymongo import ASCENDING

from .mongo_client import get_collection
from ..domain.models import UserRecord
from ..domain.errors import UserNotFoundError
from ..utils.logger import get_logger
from ..utils.time import utc_now

logger = get_logger(__name__)


class UserRepository:
    """Repository for directory user records"""

    def __init__(self):
        self._users: Collection = get_collection("users")

    def get_by_service_no(self, service_no: str) -> Optional[UserRecord]:
        """Case-insensitive lookup by service number"""
        doc = self._users.find_one(
            {"service_no": {"$regex": f"^{re.escape(service_no)}$", "$options": "i"}}
        )
        if doc:
            doc.pop("_id", None)
            return UserRecord.model_validate(doc)
        return None

    def find_by_roles(self, roles: Sequence[str], active_only: bool = True) -> List[UserRecord]:
        """Users holding any of the given roles"""
        query: Dict[str, Any] = {"role": {"$in": list(roles)}}
        if active_only:
            query["is_active"] = {"$ne": False}

        users = []
        for doc in self._users.find(query).sort("service_no", ASCENDING):
            doc.pop("_id", None)
            users.append(UserRecord.model_validate(doc))
        return users

    def upsert_user(self, user: UserRecord) -> UserRecord:
        """Insert or replace a user keyed by service number"""
        doc = user.model_dump()
        doc["_id"] = user.service_no
        doc["updated_at"] = utc_now()

        self._users.replace_one({"service_no": user.service_no}, doc, upsert=True)
        logger.info(f"Upserted user {user.service_no}", extra={"service_no": user.service_no})
        return UserRecord.model_validate(doc)

    def set_active(self, service_no: str, is_active: bool) -> UserRecord:
        result = self._users.find_one_and_update(
            {"service_no": service_no},
            {"$set": {"is_active": is_active, "updated_at": utc_now()}},
            return_document=True
        )
        if result is None:
            raise UserNotFoundError(f"User {service_no} not found")
        result.pop("_id", None)
        return UserRecord.model_validate(result)
