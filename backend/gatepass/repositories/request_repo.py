"""Request Repository - Data access for gate pass requests"""
import re
from bson import ObjectId
from typing import Any, Dict, Iterable, List, Optional
from pymongo.collection import Collection
from pymongo import DESCENDING

from .mongo_client import get_collection
from ..domain.models import GatePassRequest
from ..domain.legacy import normalize_request_document
from ..domain.errors import RequestNotFoundError, ConcurrencyError
from ..utils.logger import get_logger
from ..utils.time import utc_now

logger = get_logger(__name__)


def _to_request(doc: Dict[str, Any]) -> GatePassRequest:
    doc = normalize_request_document(doc)
    doc.pop("_id", None)
    return GatePassRequest.model_validate(doc)


class RequestRepository:
    """Repository for the Request store"""

    def __init__(self):
        self._requests: Collection = get_collection("requests")

    def create_request(self, request: GatePassRequest) -> GatePassRequest:
        """Insert a new request"""
        doc = request.model_dump()
        doc["_id"] = request.request_id

        self._requests.insert_one(doc)
        logger.info(
            f"Created request: {request.reference_number}",
            extra={"reference_number": request.reference_number}
        )
        return request

    def get_by_reference(self, reference_number: str) -> Optional[GatePassRequest]:
        """Get request by reference number"""
        doc = self._requests.find_one(
            {"$or": [{"reference_number": reference_number}, {"referenceNumber": reference_number}]}
        )
        if doc:
            return _to_request(doc)
        return None

    def get_by_reference_or_raise(self, reference_number: str) -> GatePassRequest:
        """Get request by reference number or raise error"""
        request = self.get_by_reference(reference_number)
        if not request:
            raise RequestNotFoundError(
                f"Request {reference_number} not found",
                details={"reference_number": reference_number}
            )
        return request

    def get_by_ids(self, request_ids: Iterable[str]) -> Dict[str, GatePassRequest]:
        """Fetch several requests at once, keyed by request_id"""
        ids = list(set(request_ids))
        if not ids:
            return {}

        # Unmigrated documents are addressed by their ObjectId
        object_ids = [ObjectId(i) for i in ids if ObjectId.is_valid(i)]
        query = {"$or": [{"request_id": {"$in": ids}}, {"_id": {"$in": ids + object_ids}}]}

        result = {}
        for doc in self._requests.find(query):
            request = _to_request(doc)
            result[request.request_id] = request
        return result

    def update_request(
        self,
        request_id: str,
        updates: Dict[str, Any],
        expected_version: Optional[int] = None
    ) -> GatePassRequest:
        """Update request with optimistic concurrency"""
        updates = dict(updates)
        updates["updated_at"] = utc_now()

        filter_query: Dict[str, Any] = {"request_id": request_id}
        if expected_version is not None:
            filter_query["version"] = expected_version
            updates["version"] = expected_version + 1

        result = self._requests.find_one_and_update(
            filter_query,
            {"$set": updates},
            return_document=True
        )

        if result is None:
            if expected_version is not None and self._requests.find_one({"request_id": request_id}):
                raise ConcurrencyError(
                    f"Request {request_id} was modified. Please refresh and try again.",
                    details={"expected_version": expected_version}
                )
            raise RequestNotFoundError(f"Request {request_id} not found")

        request = _to_request(result)
        logger.info(
            f"Updated request: {request.reference_number}",
            extra={"reference_number": request.reference_number, "status": request.status}
        )
        return request

    def list_by_requester(
        self,
        employee_service_no: str,
        include_hidden: bool = False,
        limit: int = 200
    ) -> List[GatePassRequest]:
        """List a requester's gate passes, newest first"""
        query: Dict[str, Any] = {
            "employee_service_no": {"$regex": f"^{re.escape(employee_service_no)}$", "$options": "i"}
        }
        if not include_hidden:
            query["show"] = {"$ne": False}

        cursor = self._requests.find(query).sort("created_at", DESCENDING).limit(limit)
        return [_to_request(doc) for doc in cursor]

    def delete_request(self, request_id: str) -> bool:
        """Remove a request (only used to undo a failed submission)"""
        result = self._requests.delete_one({"request_id": request_id})
        return result.deleted_count > 0
