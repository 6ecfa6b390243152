"""Service layer for the connection handler's commands."""

from server.services.auth_service import AuthService
from server.services.download_service import DownloadService, DownloadTicket
from server.services.file_service import FileService
from server.services.request_service import RequestService
from server.services.upload_service import UploadRequest, UploadService

__all__ = [
    "AuthService",
    "DownloadService",
    "DownloadTicket",
    "FileService",
    "RequestService",
    "UploadRequest",
    "UploadService",
]
