"""Email rendering"""
from gatepass.domain.enums import NotificationTemplateKey
from gatepass.templates.email_templates import TEMPLATE_REGISTRY, get_email_template

PAYLOAD = {
    "reference_number": "REQ-20260101-0001",
    "out_location": "Colombo",
    "destination": "Kandy",
    "destination_type": "SLT",
    "requester_service_no": "SV00001",
    "recipient_name": "Nimal",
}


def test_every_template_key_is_registered():
    assert set(TEMPLATE_REGISTRY) == set(NotificationTemplateKey)


def test_rendered_templates_mention_the_reference():
    for key in NotificationTemplateKey:
        if key == NotificationTemplateKey.CUSTOM:
            continue
        rendered = get_email_template(key.value, PAYLOAD, "https://gatepass.example.com")
        assert "REQ-20260101-0001" in rendered["subject"]
        assert "REQ-20260101-0001" in rendered["body"]


def test_rejection_email_carries_reason():
    payload = dict(PAYLOAD, rejected_stage="Verifier", recipient_stage="Requester", comment="Seal <broken>")
    rendered = get_email_template(NotificationTemplateKey.REQUEST_REJECTED.value, payload)

    assert rendered["subject"].endswith("rejected at Verifier")
    assert "Seal &lt;broken&gt;" in rendered["body"]


def test_custom_template_passes_html_through():
    rendered = get_email_template("CUSTOM", {"subject": "Hi", "html": "<p>raw</p>"})
    assert rendered == {"subject": "Hi", "body": "<p>raw</p>"}


def test_unknown_key_still_renders():
    rendered = get_email_template("NOT_A_TEMPLATE", {"reference_number": "REQ-1"})
    assert rendered["subject"] == "Gate pass update REQ-1"
