"""ID Generation Utilities"""
import random
import time
import uuid
from datetime import datetime, timezone
from typing import Optional


def generate_id(prefix: Optional[str] = None) -> str:
    """
    Generate a unique ID with optional prefix
    
    Args:
        prefix: Optional prefix for the ID (e.g., 'GPR', 'STS', 'NTF')
        
    Returns:
        Unique ID string
        
    Examples:
        >>> generate_id('STS')
        'STS-a1b2c3d4e5f6'
        >>> generate_id()
        'a1b2c3d4e5f6'
    """
    unique_part = uuid.uuid4().hex[:12]
    
    if prefix:
        return f"{prefix}-{unique_part}"
    return unique_part


def generate_reference_number() -> str:
    """
    Generate a gate pass reference number
    
    Format is REQ-<epoch milliseconds>-<random 0..999>, which is what
    printed passes and the security desk search by.
    """
    epoch_ms = int(time.time() * 1000)
    return f"REQ-{epoch_ms}-{random.randint(0, 999)}"


def generate_request_id() -> str:
    """Generate request document ID"""
    return generate_id("GPR")


def generate_status_id() -> str:
    """Generate status ledger row ID"""
    return generate_id("STS")


def generate_transition_id() -> str:
    """Generate status transition ID"""
    return generate_id("TRN")


def generate_notification_id() -> str:
    """Generate notification ID"""
    return generate_id("NTF")


def generate_correlation_id() -> str:
    """
    Generate a correlation ID for request tracing
    
    Returns:
        Correlation ID string with timestamp prefix
    """
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    unique_part = uuid.uuid4().hex[:8]
    return f"COR-{timestamp}-{unique_part}"
