"""Prototype management API routes (FastAPI).

Provides CRUD operations, HTML/ZIP upload, admin preview serving,
feedback listing and guided-tour annotations. All routes are admin-only.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from fastapi.responses import FileResponse
from pydantic import BaseModel

from showcase.core.feedback import FeedbackService, feedback_to_dict
from showcase.core.prototype import AnnotationService, annotation_to_dict
from showcase.core.utils import parse_uuid
from ..core import NotFoundError
from ..deps import (
    get_app_settings,
    get_db_manager,
    get_prototype_manager,
    get_upload_service,
    record_audit,
    require_admin,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/prototypes", tags=["prototypes"])


# ── Request/Response models ──────────────────────────────────────────────

class PrototypeUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    version: Optional[str] = None
    is_top_secret: Optional[bool] = None


class AnnotationCreate(BaseModel):
    title: str
    description: Optional[str] = None
    x_percent: float = 50
    y_percent: float = 50
    step_order: int = 1
    page_path: Optional[str] = None


class AnnotationUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    x_percent: Optional[float] = None
    y_percent: Optional[float] = None
    step_order: Optional[int] = None
    page_path: Optional[str] = None


UPLOAD_CHUNK_SIZE = 1024 * 1024


async def _read_upload(file: Optional[UploadFile], uploads):
    """Read the multipart file, stopping at the upload cap."""
    if file is None:
        return None, None
    if file.size is not None:
        uploads.check_size(file.size)

    chunks = []
    total = 0
    while True:
        chunk = await file.read(UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        total += len(chunk)
        uploads.check_size(total)
        chunks.append(chunk)
    return file.filename, b"".join(chunks)


# ── Prototype CRUD ───────────────────────────────────────────────────────

@router.get("")
async def list_prototypes(
    status: Optional[str] = None,
    q: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: dict = Depends(require_admin),
    pm=Depends(get_prototype_manager),
):
    """List prototypes, newest first, with optional status filter and search."""
    prototypes, total = pm.list_prototypes(status=status, query=q, page=page, limit=limit)
    return {
        "prototypes": prototypes,
        "pagination": {"page": page, "limit": limit, "total": total},
    }


@router.post("", status_code=201)
async def create_prototype(
    request: Request,
    title: str = Form(""),
    description: str = Form(""),
    status: str = Form("draft"),
    is_top_secret: bool = Form(False),
    file: Optional[UploadFile] = File(None),
    user: dict = Depends(require_admin),
    pm=Depends(get_prototype_manager),
    uploads=Depends(get_upload_service),
):
    """Create a prototype from an uploaded HTML or ZIP file."""
    filename, content = await _read_upload(file, uploads)
    prototype = pm.create_prototype(
        user_id=user["user_id"],
        title=title,
        filename=filename,
        content=content,
        description=description,
        status=status,
        is_top_secret=is_top_secret,
    )
    record_audit(
        request, "prototype:create", "prototype", resource_id=prototype["id"],
        details={"title": prototype["title"], "type": prototype["type"]},
    )
    return {"prototype": prototype}


@router.get("/{prototype_id}")
async def get_prototype(
    prototype_id: str,
    user: dict = Depends(require_admin),
    pm=Depends(get_prototype_manager),
    settings=Depends(get_app_settings),
):
    """Prototype with its magic links, view total and feedback summary."""
    return pm.get_prototype_detail(prototype_id, client_url=settings.client_url)


@router.patch("/{prototype_id}")
async def update_prototype(
    prototype_id: str,
    data: PrototypeUpdate,
    request: Request,
    user: dict = Depends(require_admin),
    pm=Depends(get_prototype_manager),
):
    """Update prototype metadata."""
    changes = data.model_dump(exclude_unset=True)
    prototype = pm.update_prototype(prototype_id, **changes)
    record_audit(request, "prototype:update", "prototype", resource_id=prototype["id"], details=changes)
    return {"prototype": prototype}


@router.delete("/{prototype_id}")
async def delete_prototype(
    prototype_id: str,
    request: Request,
    user: dict = Depends(require_admin),
    pm=Depends(get_prototype_manager),
):
    """Delete a prototype with its files, links, views and feedback."""
    snapshot = pm.delete_prototype(prototype_id)
    record_audit(
        request, "prototype:delete", "prototype", resource_id=snapshot["id"],
        details={"title": snapshot["title"]},
    )
    return {"message": "Prototype deleted"}


@router.post("/{prototype_id}/upload")
async def replace_upload(
    prototype_id: str,
    request: Request,
    file: Optional[UploadFile] = File(None),
    user: dict = Depends(require_admin),
    pm=Depends(get_prototype_manager),
    uploads=Depends(get_upload_service),
):
    """Replace the prototype's files; bumps the version."""
    filename, content = await _read_upload(file, uploads)
    prototype = pm.replace_upload(prototype_id, filename, content)
    record_audit(
        request, "prototype:upload", "prototype", resource_id=prototype["id"],
        details={"version": prototype["version"], "type": prototype["type"]},
    )
    return {"prototype": prototype}


@router.get("/{prototype_id}/serve/{path:path}")
async def serve_file(
    prototype_id: str,
    path: str,
    user: dict = Depends(require_admin),
    pm=Depends(get_prototype_manager),
):
    """Admin preview of any prototype file, published or not."""
    prototype = pm.get_prototype(prototype_id)
    if not prototype:
        raise NotFoundError("Prototype not found")
    return FileResponse(pm.resolve_file(prototype, path))


@router.get("/{prototype_id}/feedback")
async def list_feedback(
    prototype_id: str,
    user: dict = Depends(require_admin),
    db_manager=Depends(get_db_manager),
    pm=Depends(get_prototype_manager),
):
    """All feedback for a prototype, newest first."""
    if not pm.get_prototype(prototype_id):
        raise NotFoundError("Prototype not found")
    with db_manager.get_session() as session:
        items = FeedbackService(session).list_for_prototype(parse_uuid(prototype_id, "Prototype"))
        return {"feedback": [feedback_to_dict(f) for f in items]}


# ── Annotations ──────────────────────────────────────────────────────────

@router.get("/{prototype_id}/annotations")
async def list_annotations(
    prototype_id: str,
    page_path: Optional[str] = None,
    user: dict = Depends(require_admin),
    db_manager=Depends(get_db_manager),
):
    with db_manager.get_session() as session:
        items = AnnotationService(session).list(prototype_id, page_path)
        return {"annotations": [annotation_to_dict(a) for a in items]}


@router.post("/{prototype_id}/annotations", status_code=201)
async def create_annotation(
    prototype_id: str,
    data: AnnotationCreate,
    request: Request,
    user: dict = Depends(require_admin),
    db_manager=Depends(get_db_manager),
):
    with db_manager.get_session() as session:
        annotation = AnnotationService(session).create(
            prototype_id, user["user_id"], data.model_dump(exclude_unset=True)
        )
        result = annotation_to_dict(annotation)

    record_audit(request, "annotation:create", "annotation", resource_id=result["id"],
                 details={"prototype_id": prototype_id})
    return {"annotation": result}


@router.patch("/{prototype_id}/annotations/{annotation_id}")
async def update_annotation(
    prototype_id: str,
    annotation_id: str,
    data: AnnotationUpdate,
    user: dict = Depends(require_admin),
    db_manager=Depends(get_db_manager),
):
    with db_manager.get_session() as session:
        annotation = AnnotationService(session).update(
            prototype_id, annotation_id, data.model_dump(exclude_unset=True)
        )
        return {"annotation": annotation_to_dict(annotation)}


@router.delete("/{prototype_id}/annotations/{annotation_id}")
async def delete_annotation(
    prototype_id: str,
    annotation_id: str,
    request: Request,
    user: dict = Depends(require_admin),
    db_manager=Depends(get_db_manager),
):
    with db_manager.get_session() as session:
        AnnotationService(session).delete(prototype_id, annotation_id)

    record_audit(request, "annotation:delete", "annotation", resource_id=annotation_id,
                 details={"prototype_id": prototype_id})
    return {"message": "Annotation deleted"}
