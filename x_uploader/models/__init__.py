"""Domain model exports."""

from .credential import Credential
from .upload import TERMINAL_STATUSES, UploadRecord, UploadStatus

__all__ = ["Credential", "TERMINAL_STATUSES", "UploadRecord", "UploadStatus"]
