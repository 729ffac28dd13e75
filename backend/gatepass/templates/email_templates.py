"""
Email Templates - HTML emails for every gate pass hand-off

Each template takes the outbox payload and returns {"subject", "body"}.
Table-based markup keeps Outlook rendering stable.
"""
from html import escape
from typing import Any, Callable, Dict, Optional

from ..domain.enums import NotificationTemplateKey


def get_base_template(
    content: str,
    action_button_text: Optional[str] = None,
    action_button_url: Optional[str] = None,
    footer_note: Optional[str] = None,
    accent_color: str = "#0B5ED7"
) -> str:
    """Wrap template content in the shared gate pass layout"""
    button_html = ""
    if action_button_text and action_button_url:
        button_html = f'''
        <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%" style="margin: 28px 0;">
            <tr>
                <td align="center">
                    <a href="{escape(action_button_url)}"
                       style="display: inline-block; background-color: {accent_color}; color: #ffffff;
                              text-decoration: none; padding: 12px 28px; border-radius: 6px;
                              font-weight: 600; font-size: 14px; font-family: Arial, sans-serif;">
                        {escape(action_button_text)}
                    </a>
                </td>
            </tr>
        </table>
        '''

    footer_note_html = ""
    if footer_note:
        footer_note_html = f'''
        <p style="margin: 16px 0 0 0; padding: 12px; background-color: #FEF3C7; font-size: 13px;
                  color: #92400E; font-family: Arial, sans-serif;">{escape(footer_note)}</p>
        '''

    return f'''
<!DOCTYPE html>
<html>
<head>
    <meta http-equiv="Content-Type" content="text/html; charset=UTF-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0" />
    <title>Gate Pass</title>
</head>
<body style="margin: 0; padding: 0; background-color: #F3F4F6;">
    <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%">
        <tr>
            <td align="center" style="padding: 24px 12px;">
                <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="600"
                       style="background-color: #ffffff; border-top: 4px solid {accent_color};">
                    <tr>
                        <td style="padding: 20px 32px; font-family: Arial, sans-serif; font-size: 18px;
                                   font-weight: bold; color: #111827;">Gate Pass System</td>
                    </tr>
                    <tr>
                        <td style="padding: 0 32px 32px 32px; font-family: Arial, sans-serif;">
                            {content}
                            {button_html}
                            {footer_note_html}
                        </td>
                    </tr>
                    <tr>
                        <td style="padding: 16px 32px; background-color: #F9FAFB; font-size: 12px;
                                   color: #6B7280; font-family: Arial, sans-serif;">
                            This is an automated message. Please do not reply.
                        </td>
                    </tr>
                </table>
            </td>
        </tr>
    </table>
</body>
</html>
'''


# =============================================================================
# Info Card Component
# =============================================================================

def get_info_card(reference_number: str, fields: Optional[Dict[str, Any]] = None) -> str:
    """Two-column card listing the gate pass details"""
    rows = f'''
        <tr>
            <td style="padding: 10px 16px; color: #6B7280; font-size: 13px; width: 160px;">Reference</td>
            <td style="padding: 10px 16px; font-size: 13px; font-family: Consolas, monospace;">{escape(reference_number)}</td>
        </tr>
    '''
    for label, value in (fields or {}).items():
        if value in (None, ""):
            continue
        rows += f'''
        <tr>
            <td style="padding: 10px 16px; color: #6B7280; font-size: 13px; border-top: 1px solid #E5E7EB;">{escape(label)}</td>
            <td style="padding: 10px 16px; color: #111827; font-size: 13px; font-weight: bold; border-top: 1px solid #E5E7EB;">{escape(str(value))}</td>
        </tr>
        '''

    return f'''
    <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%"
           style="margin: 20px 0; border: 1px solid #E5E7EB; background-color: #F9FAFB; font-family: Arial, sans-serif;">
        {rows}
    </table>
    '''


def _heading(title: str, intro: str) -> str:
    return f'''
    <h1 style="margin: 0 0 8px 0; font-size: 22px; color: #111827;">{escape(title)}</h1>
    <p style="margin: 0; color: #4B5563; font-size: 14px; line-height: 1.6;">{escape(intro)}</p>
    '''


def _route_fields(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "Out location": payload.get("out_location"),
        "Destination": payload.get("destination"),
        "Destination type": payload.get("destination_type"),
        "Requested by": payload.get("requester_name") or payload.get("requester_service_no"),
    }


# =============================================================================
# Individual Templates
# =============================================================================

def get_request_submitted_template(payload: Dict[str, Any], app_url: str = "") -> Dict[str, str]:
    """Template: new gate pass waiting for the executive officer"""
    ref = payload.get("reference_number", "")
    content = _heading(
        "New gate pass awaiting your approval",
        f"Hello {payload.get('recipient_name') or 'there'}, a gate pass has been submitted for your approval."
    ) + get_info_card(ref, _route_fields(payload))

    return {
        "subject": f"Gate pass {ref} awaiting executive approval",
        "body": get_base_template(content, "Review request", f"{app_url}/executive/pending")
    }


def get_verify_pending_template(payload: Dict[str, Any], app_url: str = "") -> Dict[str, str]:
    """Template: executive approved, verifier must check the goods"""
    ref = payload.get("reference_number", "")
    fields = _route_fields(payload)
    fields["Approved by"] = payload.get("approved_by")
    content = _heading(
        "Gate pass ready for verification",
        f"Hello {payload.get('recipient_name') or 'there'}, the executive officer approved this gate pass. "
        "Please verify the items before dispatch."
    ) + get_info_card(ref, fields)

    return {
        "subject": f"Gate pass {ref} awaiting verification",
        "body": get_base_template(content, "Open verification queue", f"{app_url}/verify/pending")
    }


def get_dispatch_pending_template(payload: Dict[str, Any], app_url: str = "") -> Dict[str, str]:
    """Template: verified, waiting for the dispatching petrol leader"""
    ref = payload.get("reference_number", "")
    fields = _route_fields(payload)
    fields["Verified by"] = payload.get("approved_by")
    note = None
    if payload.get("is_non_slt_place"):
        note = "External destination: your dispatch approval is the final step."
    content = _heading(
        "Gate pass ready for dispatch",
        f"Hello {payload.get('recipient_name') or 'there'}, this gate pass has been verified and needs dispatch approval."
    ) + get_info_card(ref, fields)

    return {
        "subject": f"Gate pass {ref} awaiting dispatch",
        "body": get_base_template(content, "Open dispatch queue", f"{app_url}/dispatch/pending", footer_note=note)
    }


def get_receive_pending_assigned_template(payload: Dict[str, Any], app_url: str = "") -> Dict[str, str]:
    """Template: dispatched to a named receiver"""
    ref = payload.get("reference_number", "")
    content = _heading(
        "Goods are on the way to you",
        f"Hello {payload.get('recipient_name') or 'there'}, you were named as the receiver for this gate pass. "
        "Please confirm receipt when the goods arrive."
    ) + get_info_card(ref, _route_fields(payload))

    return {
        "subject": f"Gate pass {ref} dispatched to you",
        "body": get_base_template(content, "Confirm receipt", f"{app_url}/receive/pending")
    }


def get_receive_pending_pool_template(payload: Dict[str, Any], app_url: str = "") -> Dict[str, str]:
    """Template: dispatched to a branch with no named receiver"""
    ref = payload.get("reference_number", "")
    content = _heading(
        "Incoming goods for your branch",
        f"Goods were dispatched to {payload.get('destination') or 'your branch'} without a named receiver. "
        "Any receiver at the branch may confirm receipt."
    ) + get_info_card(ref, _route_fields(payload))

    return {
        "subject": f"Gate pass {ref} arriving at {payload.get('destination') or 'your branch'}",
        "body": get_base_template(content, "Open receive queue", f"{app_url}/receive/pending")
    }


def get_request_received_template(payload: Dict[str, Any], app_url: str = "") -> Dict[str, str]:
    """Template: receiver confirmed, tell the requester"""
    ref = payload.get("reference_number", "")
    fields = _route_fields(payload)
    fields["Received by"] = payload.get("approved_by")
    content = _heading(
        "Your goods were received",
        f"Hello {payload.get('recipient_name') or 'there'}, the receiver confirmed the goods on your gate pass."
    ) + get_info_card(ref, fields)

    return {
        "subject": f"Gate pass {ref} received",
        "body": get_base_template(content, "View gate pass", f"{app_url}/my-requests", accent_color="#198754")
    }


def get_request_rejected_template(payload: Dict[str, Any], app_url: str = "") -> Dict[str, str]:
    """Template: rejection fan-out, one email per involved party"""
    ref = payload.get("reference_number", "")
    fields = _route_fields(payload)
    fields["Rejected at"] = payload.get("rejected_stage")
    fields["Rejected by"] = payload.get("rejected_by_service_no")
    fields["Branch"] = payload.get("rejected_by_branch")
    fields["Reason"] = payload.get("comment")
    content = _heading(
        "Gate pass rejected",
        f"Hello {payload.get('recipient_name') or 'there'}, a gate pass you were involved with as "
        f"{payload.get('recipient_stage') or 'a participant'} has been rejected."
    ) + get_info_card(ref, fields)

    return {
        "subject": f"Gate pass {ref} rejected at {payload.get('rejected_stage') or 'approval'}",
        "body": get_base_template(content, "View gate pass", f"{app_url}/my-requests", accent_color="#DC3545")
    }


def get_items_returned_template(payload: Dict[str, Any], app_url: str = "") -> Dict[str, str]:
    """Template: items sent back"""
    ref = payload.get("reference_number", "")
    fields = _route_fields(payload)
    fields["Items"] = ", ".join(payload.get("serial_numbers") or [])
    fields["Status"] = payload.get("return_status")
    content = _heading(
        "Items returned",
        "The following items on your gate pass have been marked as returned."
    ) + get_info_card(ref, fields)

    return {
        "subject": f"Gate pass {ref}: items returned",
        "body": get_base_template(content, "View gate pass", f"{app_url}/my-requests")
    }


def get_custom_template(payload: Dict[str, Any], app_url: str = "") -> Dict[str, str]:
    """Template: pre-rendered subject and html"""
    return {
        "subject": payload.get("subject", "Gate pass notification"),
        "body": payload.get("html", ""),
    }


TEMPLATE_REGISTRY: Dict[NotificationTemplateKey, Callable[[Dict[str, Any], str], Dict[str, str]]] = {
    NotificationTemplateKey.REQUEST_SUBMITTED: get_request_submitted_template,
    NotificationTemplateKey.VERIFY_PENDING: get_verify_pending_template,
    NotificationTemplateKey.DISPATCH_PENDING: get_dispatch_pending_template,
    NotificationTemplateKey.RECEIVE_PENDING_ASSIGNED: get_receive_pending_assigned_template,
    NotificationTemplateKey.RECEIVE_PENDING_POOL: get_receive_pending_pool_template,
    NotificationTemplateKey.REQUEST_RECEIVED: get_request_received_template,
    NotificationTemplateKey.REQUEST_REJECTED: get_request_rejected_template,
    NotificationTemplateKey.ITEMS_RETURNED: get_items_returned_template,
    NotificationTemplateKey.CUSTOM: get_custom_template,
}


def get_email_template(
    template_key: str,
    payload: Dict[str, Any],
    app_url: str = ""
) -> Dict[str, str]:
    """
    Get rendered email template by key

    Args:
        template_key: Template identifier (from NotificationTemplateKey)
        payload: Data to populate the template
        app_url: Base URL for action buttons

    Returns:
        Dict with 'subject' and 'body' keys
    """
    try:
        template_func = TEMPLATE_REGISTRY.get(NotificationTemplateKey(template_key))
    except ValueError:
        template_func = None

    if template_func:
        return template_func(payload, app_url)

    # Unknown key: still deliver something readable
    ref = payload.get("reference_number", "")
    content = _heading("Gate pass update", "There is an update on a gate pass.") + get_info_card(ref)
    return {
        "subject": f"Gate pass update {ref}".strip(),
        "body": get_base_template(content, "Open Gate Pass", f"{app_url}/")
    }
