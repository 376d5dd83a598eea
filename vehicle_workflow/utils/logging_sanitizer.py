"""
Logging Sanitizer Utility

Provides utilities to sanitize customer and credential data before logging.
Move metadata and vehicle attribute bags can carry buyer details (sold/shipped
locations require customerInfo), which must never reach the log files.
"""

from typing import Dict, Any


# Fields that should never be logged (compared case-insensitively)
SENSITIVE_FIELDS = {
    'password',
    'secret',
    'token',
    'api_key',
    'apikey',
    'auth_token',
    'access_token',
    'credit_card',
    'creditcard',
    'cvv',
    'ssn',
    # Buyer personal data
    'customerinfo',
    'customer_info',
    'customername',
    'customer_name',
    'customeremail',
    'customer_email',
    'customerphone',
    'customer_phone',
    'email',
    'phone',
    'address',
    'idnumber',
    'id_number',
}


def is_sensitive(key: str) -> bool:
    """Check whether a field name is on the redaction list"""
    return key.lower() in SENSITIVE_FIELDS


def sanitize_dict(data: Dict[str, Any], redact_text: str = '[REDACTED]') -> Dict[str, Any]:
    """
    Sanitize a dictionary by replacing sensitive field values with redaction text.

    Args:
        data: Dictionary to sanitize
        redact_text: Text to use for redacted values (default: '[REDACTED]')

    Returns:
        Sanitized copy with sensitive values replaced

    Example:
        >>> data = {'salePrice': 42000, 'customerInfo': {'name': 'J. Doe'}}
        >>> sanitize_dict(data)
        {'salePrice': 42000, 'customerInfo': '[REDACTED]'}
    """
    if not data:
        return data

    sanitized = {}
    for key, value in data.items():
        if is_sensitive(key):
            sanitized[key] = redact_text
        elif isinstance(value, dict):
            sanitized[key] = sanitize_dict(value, redact_text)
        elif isinstance(value, list):
            sanitized[key] = [
                sanitize_dict(item, redact_text) if isinstance(item, dict) else item
                for item in value
            ]
        else:
            sanitized[key] = value

    return sanitized


def sanitize_exception_message(exception: Exception) -> str:
    """
    Sanitize exception messages to ensure they don't contain sensitive data.

    Args:
        exception: Exception to sanitize

    Returns:
        Sanitized exception message
    """
    message = str(exception)

    # Simple heuristic: a sensitive field name in the text hides the whole message
    if any(field in message.lower() for field in SENSITIVE_FIELDS):
        return f"{type(exception).__name__}: [Message contains sensitive data]"

    return message
