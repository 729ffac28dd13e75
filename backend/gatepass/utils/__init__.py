"""Utility modules"""
from .logger import get_logger, setup_logging
from .idgen import generate_id, generate_correlation_id, generate_reference_number
from .time import utc_now, format_iso, parse_iso
from .cache import TTLCache

__all__ = [
    "get_logger",
    "setup_logging",
    "generate_id",
    "generate_correlation_id",
    "generate_reference_number",
    "utc_now",
    "format_iso",
    "parse_iso",
    "TTLCache",
]
