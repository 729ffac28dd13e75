"""Service modules - Business logic and gateways"""
from .directory_service import DirectoryService
from .notification_service import NotificationService
from .event_bus_service import EventBusService, get_event_bus
from .request_service import RequestService
from .report_service import ReportService

__all__ = [
    "DirectoryService",
    "NotificationService",
    "EventBusService",
    "get_event_bus",
    "RequestService",
    "ReportService",
]
