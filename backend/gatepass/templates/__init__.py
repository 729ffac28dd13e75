"""
Email Templates Package

HTML email templates for gate pass notifications.
"""
from .email_templates import (
    get_email_template,
    get_base_template,
    get_info_card,
    TEMPLATE_REGISTRY
)

__all__ = [
    "get_email_template",
    "get_base_template",
    "get_info_card",
    "TEMPLATE_REGISTRY"
]
