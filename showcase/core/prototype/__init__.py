"""Prototype management: CRUD, uploads, annotations and access requests."""

from .access_requests import AccessRequestService, request_to_dict
from .annotations import AnnotationService, annotation_to_dict
from .prototype_manager import PrototypeManager, bump_version
from .upload_service import UploadResult, UploadService, find_entry_file

__all__ = [
    "AccessRequestService",
    "AnnotationService",
    "PrototypeManager",
    "UploadResult",
    "UploadService",
    "annotation_to_dict",
    "bump_version",
    "find_entry_file",
    "request_to_dict",
]
