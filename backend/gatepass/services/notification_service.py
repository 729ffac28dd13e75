"""Notification Service - Gate pass emails via the outbox and Graph API

Stage code only enqueues; the scheduler drains the outbox and sends.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional
import httpx

from ..domain.models import GatePassRequest, NotificationOutbox, UserRecord, RejectionInfo
from ..domain.enums import NotificationStatus, NotificationTemplateKey
from ..domain.errors import EmailSendError
from ..repositories.notification_repo import NotificationRepository
from ..templates import get_email_template
from ..config.settings import settings
from ..utils.idgen import generate_notification_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


def _request_payload(request: GatePassRequest) -> Dict[str, Any]:
    """Fields every gate pass email can show"""
    return {
        "reference_number": request.reference_number,
        "out_location": request.out_location,
        "destination": request.destination,
        "destination_type": request.destination_type,
        "is_non_slt_place": request.is_non_slt_place,
        "requester_service_no": request.employee_service_no,
    }


class NotificationService:
    """Service for queueing and sending notifications"""

    GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"

    def __init__(self, repo: Optional[NotificationRepository] = None):
        self.repo = repo or NotificationRepository()
        self._access_token: Optional[str] = None
        self._token_expiry: Optional[datetime] = None

    # =========================================================================
    # Outbox Creation
    # =========================================================================

    def enqueue_notification(
        self,
        template_key: NotificationTemplateKey,
        recipients: Iterable[Optional[str]],
        payload: Dict[str, Any],
        reference_number: Optional[str] = None
    ) -> Optional[NotificationOutbox]:
        """
        Enqueue a notification for sending

        Recipients without an email address are dropped. Returns None when
        nobody is left to send to.
        """
        addresses = sorted({r.strip() for r in recipients if r and r.strip()})
        if not addresses:
            logger.warning(
                f"No email recipients for {template_key.value}",
                extra={"reference_number": reference_number}
            )
            return None

        notification = NotificationOutbox(
            notification_id=generate_notification_id(),
            reference_number=reference_number,
            template_key=template_key,
            recipients=addresses,
            payload=payload,
            status=NotificationStatus.PENDING,
            created_at=utc_now()
        )
        return self.repo.create_notification(notification)

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        reference_number: Optional[str] = None
    ) -> Optional[NotificationOutbox]:
        """Fire-and-forget email with a pre-rendered body"""
        return self.enqueue_notification(
            NotificationTemplateKey.CUSTOM,
            [to_email],
            {"subject": subject, "html": html_body, "reference_number": reference_number},
            reference_number=reference_number
        )

    def enqueue_request_submitted(
        self,
        request: GatePassRequest,
        executive: UserRecord
    ) -> Optional[NotificationOutbox]:
        """Tell the executive officer a new pass is waiting"""
        payload = _request_payload(request)
        payload["recipient_name"] = executive.name
        return self.enqueue_notification(
            NotificationTemplateKey.REQUEST_SUBMITTED, [executive.email], payload, request.reference_number
        )

    def enqueue_verify_pending(
        self,
        request: GatePassRequest,
        verifier: UserRecord,
        approved_by: Optional[str]
    ) -> Optional[NotificationOutbox]:
        payload = _request_payload(request)
        payload.update(recipient_name=verifier.name, approved_by=approved_by)
        return self.enqueue_notification(
            NotificationTemplateKey.VERIFY_PENDING, [verifier.email], payload, request.reference_number
        )

    def enqueue_dispatch_pending(
        self,
        request: GatePassRequest,
        dispatcher: UserRecord,
        approved_by: Optional[str]
    ) -> Optional[NotificationOutbox]:
        payload = _request_payload(request)
        payload.update(recipient_name=dispatcher.name, approved_by=approved_by)
        return self.enqueue_notification(
            NotificationTemplateKey.DISPATCH_PENDING, [dispatcher.email], payload, request.reference_number
        )

    def enqueue_receive_pending_assigned(
        self,
        request: GatePassRequest,
        receiver: UserRecord
    ) -> Optional[NotificationOutbox]:
        payload = _request_payload(request)
        payload["recipient_name"] = receiver.name
        return self.enqueue_notification(
            NotificationTemplateKey.RECEIVE_PENDING_ASSIGNED, [receiver.email], payload, request.reference_number
        )

    def enqueue_receive_pending_pool(
        self,
        request: GatePassRequest,
        receivers: List[UserRecord]
    ) -> Optional[NotificationOutbox]:
        """One email addressed to every receiver at the destination branch"""
        return self.enqueue_notification(
            NotificationTemplateKey.RECEIVE_PENDING_POOL,
            [r.email for r in receivers],
            _request_payload(request),
            request.reference_number
        )

    def enqueue_request_received(
        self,
        request: GatePassRequest,
        requester: UserRecord,
        received_by: Optional[str]
    ) -> Optional[NotificationOutbox]:
        payload = _request_payload(request)
        payload.update(recipient_name=requester.name, approved_by=received_by)
        return self.enqueue_notification(
            NotificationTemplateKey.REQUEST_RECEIVED, [requester.email], payload, request.reference_number
        )

    def enqueue_rejection(
        self,
        request: GatePassRequest,
        recipient: UserRecord,
        recipient_stage: str,
        rejection: RejectionInfo,
        comment: str
    ) -> Optional[NotificationOutbox]:
        """Rejection notice for one involved party"""
        payload = _request_payload(request)
        payload.update(
            recipient_name=recipient.name,
            recipient_stage=recipient_stage,
            rejected_stage=rejection.rejected_by,
            rejected_by_service_no=rejection.service_no,
            rejected_by_branch=rejection.branch,
            comment=comment,
        )
        return self.enqueue_notification(
            NotificationTemplateKey.REQUEST_REJECTED, [recipient.email], payload, request.reference_number
        )

    def enqueue_items_returned(
        self,
        request: GatePassRequest,
        requester: UserRecord,
        serial_numbers: List[str],
        return_status: str
    ) -> Optional[NotificationOutbox]:
        payload = _request_payload(request)
        payload.update(recipient_name=requester.name, serial_numbers=serial_numbers, return_status=return_status)
        return self.enqueue_notification(
            NotificationTemplateKey.ITEMS_RETURNED, [requester.email], payload, request.reference_number
        )

    # =========================================================================
    # Delivery
    # =========================================================================

    async def send_notification(self, notification: NotificationOutbox) -> bool:
        """
        Send a single outbox notification.

        The scheduler holds the row lock while this runs. Returns True when
        sent; failures are recorded on the row for retry.
        """
        try:
            email_content = self._build_email_content(notification)

            if settings.email_enabled:
                await self._send_email_via_graph(
                    recipients=notification.recipients,
                    subject=email_content["subject"],
                    body=email_content["body"]
                )
            else:
                logger.info(
                    f"Email disabled, not sending: {email_content['subject']}",
                    extra={"notification_id": notification.notification_id}
                )

            self.repo.mark_sent(notification.notification_id)
            return True

        except Exception as e:
            self.repo.mark_failed(notification.notification_id, str(e))
            logger.error(
                f"Failed to send notification: {notification.notification_id}: {e}",
                extra={
                    "notification_id": notification.notification_id,
                    "reference_number": notification.reference_number
                }
            )
            return False

    def _build_email_content(self, notification: NotificationOutbox) -> Dict[str, str]:
        """Render subject and body from the template registry"""
        return get_email_template(
            template_key=notification.template_key,
            payload=notification.payload,
            app_url=settings.frontend_url
        )

    async def _send_email_via_graph(
        self,
        recipients: List[str],
        subject: str,
        body: str
    ) -> None:
        """Send email using Microsoft Graph API with service mailbox (ROPC)"""
        access_token = await self._get_access_token()

        message = {
            "message": {
                "subject": subject,
                "body": {"contentType": "HTML", "content": body},
                "toRecipients": [{"emailAddress": {"address": email}} for email in recipients]
            },
            "saveToSentItems": False
        }

        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.post(
                f"{self.GRAPH_BASE_URL}/me/sendMail",
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Content-Type": "application/json"
                },
                json=message
            )

            if response.status_code not in (200, 202):
                raise EmailSendError(
                    f"Graph API error: {response.status_code}",
                    details={"response": response.text}
                )

    async def _get_access_token(self) -> str:
        """Service mailbox token via ROPC, cached until shortly before expiry"""
        if self._access_token and self._token_expiry and utc_now() < self._token_expiry:
            return self._access_token

        token_url = f"https://login.microsoftonline.com/{settings.aad_tenant_id}/oauth2/v2.0/token"

        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.post(
                token_url,
                data={
                    "client_id": settings.aad_client_id,
                    "client_secret": settings.aad_client_secret,
                    "scope": "https://graph.microsoft.com/.default",
                    "username": settings.service_mailbox_email,
                    "password": settings.service_mailbox_password,
                    "grant_type": "password"
                }
            )

            if response.status_code != 200:
                raise EmailSendError(
                    f"Failed to get access token: {response.status_code}",
                    details={"response": response.text}
                )

            token_data = response.json()
            self._access_token = token_data["access_token"]
            expires_in = token_data.get("expires_in", 3600)
            self._token_expiry = utc_now() + timedelta(seconds=expires_in - 300)

            return self._access_token
