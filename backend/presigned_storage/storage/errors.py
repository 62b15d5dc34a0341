"""
Error taxonomy for presigned storage operations.

- ValidationError: bad input, rejected before any storage call
- GatewayError: the storage service failed (create, sign, complete, abort, list)
- StateError: the upload session is not in the expected state (e.g. already terminal)
- ApiTransportError: an API request got no response (outcome unknown)
- PartTransferError: a single part PUT failed on the client side
"""
from typing import Optional

from botocore.exceptions import ClientError


class StorageError(Exception):
    """Base class for all storage errors. Carries an HTTP status for the API layer."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(StorageError):
    """Malformed input (part count, completion list, operation)."""

    status_code = 400


class StateError(StorageError):
    """Operation issued against a session that is not in the expected state."""

    status_code = 409


class GatewayError(StorageError):
    """Failure reported by the object storage service."""

    status_code = 502

    def __init__(self, message: str, operation: Optional[str] = None, code: Optional[str] = None):
        super().__init__(message)
        self.operation = operation
        self.code = code


class StorageNotConfiguredError(GatewayError):
    """Storage endpoint or credentials are missing."""

    status_code = 503

    def __init__(self, message: str = "Storage service not configured"):
        super().__init__(message, operation="configure")


class ApiTransportError(GatewayError):
    """A request to the API got no response; whether it took effect is unknown."""


class PartTransferError(StorageError):
    """Upload of a single part to its presigned URL failed or timed out."""

    status_code = 502

    def __init__(self, part_number: int, message: str, status: Optional[int] = None):
        super().__init__(f"Part {part_number} failed: {message}")
        self.part_number = part_number
        self.status = status


# S3 error codes meaning the upload id is unknown for this bucket/key,
# or was already completed/aborted
TERMINAL_UPLOAD_CODES = {"NoSuchUpload"}


def wrap_client_error(operation: str, exc: Exception) -> StorageError:
    """
    Translate a botocore exception into the storage error taxonomy.

    Args:
        operation: Gateway operation name (e.g. 'complete_multipart_upload')
        exc: ClientError or BotoCoreError raised by boto3

    Returns:
        StateError for unknown/terminal uploads, GatewayError otherwise
    """
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {}) or {}
        code = error.get("Code", "")
        message = error.get("Message", "") or str(exc)
        if code in TERMINAL_UPLOAD_CODES:
            return StateError(f"Upload session is not open: {message}")
        return GatewayError(f"{operation} failed: {code} {message}".strip(), operation=operation, code=code)
    # BotoCoreError: connection, credential and endpoint failures
    return GatewayError(f"{operation} failed: {exc}", operation=operation)
