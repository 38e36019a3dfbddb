"""Public schema exports."""

from .auth import AuthStatusResponse, ConnectedUser, DisconnectResponse
from .uploads import UploadAcceptedResponse

__all__ = [
    "AuthStatusResponse",
    "ConnectedUser",
    "DisconnectResponse",
    "UploadAcceptedResponse",
]
