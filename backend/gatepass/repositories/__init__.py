"""Repository modules - Data access layer"""
from .mongo_client import get_database, get_collection
from .request_repo import RequestRepository
from .status_repo import StatusRepository
from .transition_repo import TransitionRepository
from .user_repo import UserRepository
from .notification_repo import NotificationRepository

__all__ = [
    "get_database",
    "get_collection",
    "RequestRepository",
    "StatusRepository",
    "TransitionRepository",
    "UserRepository",
    "NotificationRepository",
]
