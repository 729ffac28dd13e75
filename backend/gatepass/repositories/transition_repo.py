"""Transition Repository - Append-only log of ledger changes"""
from typing import List
from pymongo.collection import Collection
from pymongo import ASCENDING

from .mongo_client import get_collection
from ..domain.models import StatusTransition
from ..utils.logger import get_logger

logger = get_logger(__name__)


class TransitionRepository:
    """Repository for status transitions (append-only)"""

    def __init__(self):
        self._transitions: Collection = get_collection("status_transitions")

    def create_transition(self, transition: StatusTransition) -> StatusTransition:
        """Append a transition"""
        doc = transition.model_dump()
        doc["_id"] = transition.transition_id

        self._transitions.insert_one(doc)
        logger.info(
            f"Recorded transition: {transition.action}",
            extra={
                "reference_number": transition.reference_number,
                "stage": transition.stage,
                "action": transition.action,
                "service_no": transition.actor_service_no
            }
        )
        return transition

    def get_transitions_for_reference(self, reference_number: str) -> List[StatusTransition]:
        """Transitions for a reference number, oldest first"""
        cursor = self._transitions.find(
            {"reference_number": reference_number}
        ).sort("timestamp", ASCENDING)

        transitions = []
        for doc in cursor:
            doc.pop("_id", None)
            transitions.append(StatusTransition.model_validate(doc))
        return transitions
