"""Helpers for classifying botocore ClientErrors."""
from botocore.exceptions import ClientError


def error_code(error: ClientError) -> str:
    return error.response.get('Error', {}).get('Code', '')


def error_message(error: ClientError) -> str:
    return error.response.get('Error', {}).get('Message', '') or str(error)


def is_stack_missing(error: ClientError) -> bool:
    return "does not exist" in error_message(error)


def is_no_updates(error: ClientError) -> bool:
    return "No updates are to be performed" in error_message(error)


def is_access_denied(error: ClientError) -> bool:
    return error_code(error) in ("AccessDenied", "AccessDeniedException")


def is_bad_request(error: ClientError) -> bool:
    """Errors caused by our own inputs rather than by the caller's identity."""
    return error_code(error) in ("ValidationError", "MalformedPolicyDocument", "PackedPolicyTooLarge")
