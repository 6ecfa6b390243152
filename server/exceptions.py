"""Custom exception classes for the FileShare server.

Every FileShareError except ProtocolError maps to one ERROR:<message>
reply; the message is the text the client sees.
"""

from typing import Optional


class FileShareError(Exception):
    """
    Base exception class for all server errors that reach the wire.
    """
    message = "Request failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class AuthenticationError(FileShareError):
    """
    Raised when the handshake is rejected. The connection is closed afterwards.
    """
    message = "Authentication failed"


class BufferFullError(FileShareError):
    """
    Raised when an upload cannot be admitted under the buffer cap.
    """
    message = "Buffer full"


class ValidationError(FileShareError):
    """
    Raised when a command argument is missing or malformed.
    """
    message = "Invalid request"


class InvalidRequestIdError(ValidationError):
    """
    Raised when an upload names a request id nobody issued.
    """
    message = "Invalid request ID"


class InvalidFileIdError(ValidationError):
    """
    Raised when a chunk or completion names an unknown upload session.
    """
    message = "Invalid file ID"


class FileNotFoundOnServerError(FileShareError):
    """
    Raised when a requested file does not exist in the owner's directory.
    """
    message = "File not found"


class FilePrivateError(FileShareError):
    """
    Raised when a user downloads a private file they were not granted.
    """
    message = "File is private"


class SizeMismatchError(FileShareError):
    """
    Raised when an upload completes with a byte count other than the declared size.
    """
    message = "File size mismatch"


class SaveFailedError(FileShareError):
    """
    Raised when a completed upload cannot be written to disk.
    """
    message = "Failed to save file"


class DownloadFailedError(FileShareError):
    """
    Raised when streaming a download breaks off. The connection is closed afterwards.
    """
    message = "Download failed"


class ProtocolError(Exception):
    """
    Raised when the peer violates framing; the connection is dropped without a reply.
    """
    pass
