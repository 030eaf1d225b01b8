"""Prototype upload storage.

Stores a single HTML page as ``index.html`` or extracts a ZIP archive into
``<upload_dir>/prototypes/<prototype_id>/``, and resolves request paths
back to files inside that directory.
"""

import logging
import os
import shutil
import tempfile
import zipfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import List, Optional, Tuple

from ..exceptions import (
    AuthorizationError,
    NotFoundError,
    PayloadTooLargeError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Limits
MAX_UPLOAD_SIZE_MB = 50
MAX_ZIP_ENTRIES = 5000
# Extracted archive contents may be at most this multiple of the upload cap
MAX_EXTRACTED_FACTOR = 4
COPY_CHUNK_SIZE = 1024 * 1024

HTML_EXTENSIONS = (".html", ".htm")
ZIP_EXTENSIONS = (".zip",)
ENTRY_FILENAME = "index.html"


@dataclass
class UploadResult:
    """Outcome of storing an upload."""

    type: str                 # html | zip
    file_path: str            # entry file, relative to the prototype directory
    files_written: int = 1
    size_bytes: int = 0


class UploadService:
    """Writes prototype uploads to disk and serves them back safely."""

    def __init__(self, upload_dir: str, max_upload_size_mb: int = MAX_UPLOAD_SIZE_MB):
        self._root = Path(upload_dir).resolve()
        self._max_bytes = max_upload_size_mb * 1024 * 1024
        self._max_mb = max_upload_size_mb
        self._max_extracted_bytes = self._max_bytes * MAX_EXTRACTED_FACTOR

    def prototype_dir(self, prototype_id: str) -> Path:
        return self._root / "prototypes" / str(prototype_id)

    def check_size(self, size_bytes: int) -> None:
        """Raise PayloadTooLargeError when an upload passes the configured cap."""
        if size_bytes > self._max_bytes:
            raise PayloadTooLargeError(
                f"File too large ({size_bytes / (1024 * 1024):.1f}MB). Maximum is {self._max_mb}MB."
            )

    def _check_extracted_size(self, size_bytes: int) -> None:
        if size_bytes > self._max_extracted_bytes:
            raise PayloadTooLargeError(
                f"ZIP contents too large when extracted. Maximum is "
                f"{self._max_extracted_bytes // (1024 * 1024)}MB."
            )

    # ── Storing ──────────────────────────────────────────────────────────

    def process_upload(self, filename: Optional[str], content: bytes, prototype_id: str) -> UploadResult:
        """Validate and store an uploaded file, replacing previous contents.

        Raises:
            ValidationError: missing/unsupported file or bad archive
            PayloadTooLargeError: file exceeds the configured size
        """
        if not filename or content is None:
            raise ValidationError("A file (HTML or ZIP) is required")

        self.check_size(len(content))

        lower = filename.lower()
        if lower.endswith(HTML_EXTENSIONS):
            return self._store_html(content, prototype_id)
        if lower.endswith(ZIP_EXTENSIONS):
            return self._store_zip(content, prototype_id)
        raise ValidationError("Only HTML or ZIP files are accepted")

    def _store_html(self, content: bytes, prototype_id: str) -> UploadResult:
        target = self.prototype_dir(prototype_id)
        staging = self._staging_dir(prototype_id)
        try:
            (staging / ENTRY_FILENAME).write_bytes(content)
            self._swap_into_place(staging, target)
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        logger.info(f"Stored HTML prototype {prototype_id} ({len(content)} bytes)")
        return UploadResult(type="html", file_path=ENTRY_FILENAME, size_bytes=len(content))

    def _store_zip(self, content: bytes, prototype_id: str) -> UploadResult:
        target = self.prototype_dir(prototype_id)
        staging = self._staging_dir(prototype_id)
        temp_zip = None
        try:
            with tempfile.NamedTemporaryFile(
                suffix=".zip", prefix="showcase_upload_", delete=False
            ) as tmp:
                tmp.write(content)
                temp_zip = tmp.name

            try:
                with zipfile.ZipFile(temp_zip, "r") as zf:
                    members = self._safe_members(zf)
                    written = 0
                    for info, name in members:
                        dest = staging / name
                        dest.parent.mkdir(parents=True, exist_ok=True)
                        with zf.open(info) as src, open(dest, "wb") as out:
                            # Running total of bytes written across all members
                            while True:
                                chunk = src.read(COPY_CHUNK_SIZE)
                                if not chunk:
                                    break
                                written += len(chunk)
                                self._check_extracted_size(written)
                                out.write(chunk)
            except zipfile.BadZipFile:
                raise ValidationError("Invalid ZIP file")

            names = [name for _, name in members]

            entry = find_entry_file(names)
            if not entry:
                raise ValidationError("ZIP archive contains no HTML file")

            self._swap_into_place(staging, target)
        finally:
            shutil.rmtree(staging, ignore_errors=True)
            if temp_zip and os.path.exists(temp_zip):
                os.unlink(temp_zip)

        logger.info(f"Extracted ZIP prototype {prototype_id}: {len(names)} files, entry={entry}")
        return UploadResult(type="zip", file_path=entry, files_written=len(names), size_bytes=len(content))

    def _safe_members(self, zf: zipfile.ZipFile) -> List[Tuple[zipfile.ZipInfo, str]]:
        """Regular file members to extract, paired with their normalized names.

        Rejects the whole archive on path traversal or when the declared
        uncompressed size passes the extraction cap.
        """
        infos = zf.infolist()
        if len(infos) > MAX_ZIP_ENTRIES:
            raise ValidationError(f"ZIP archive has too many entries (max {MAX_ZIP_ENTRIES})")

        members = []
        declared = 0
        for info in infos:
            name = info.filename.replace("\\", "/")
            path = PurePosixPath(name)
            if name.startswith("/") or ".." in path.parts or (path.parts and ":" in path.parts[0]):
                raise ValidationError(f"Unsafe path in ZIP archive: {info.filename}")
            if info.is_dir() or name.endswith("/"):
                continue
            if path.parts[0] == "__MACOSX" or any(part.startswith(".") for part in path.parts):
                continue
            declared += info.file_size
            members.append((info, name))

        self._check_extracted_size(declared)
        return members

    def _staging_dir(self, prototype_id: str) -> Path:
        parent = self._root / "prototypes"
        parent.mkdir(parents=True, exist_ok=True)
        return Path(tempfile.mkdtemp(prefix=f".staging-{prototype_id}-", dir=parent))

    @staticmethod
    def _swap_into_place(staging: Path, target: Path) -> None:
        if target.exists():
            shutil.rmtree(target)
        shutil.move(str(staging), str(target))

    def delete_prototype_files(self, prototype_id: str) -> bool:
        target = self.prototype_dir(prototype_id)
        if not target.exists():
            return False
        shutil.rmtree(target)
        logger.info(f"Deleted files for prototype {prototype_id}")
        return True

    # ── Serving ──────────────────────────────────────────────────────────

    def resolve_file(self, prototype_id: str, entry_path: Optional[str], requested: Optional[str]) -> Path:
        """Map a request path to a file inside the prototype directory.

        An empty path means the entry file.

        Raises:
            AuthorizationError: path escapes the prototype directory
            NotFoundError: file does not exist
        """
        base = self.prototype_dir(prototype_id).resolve()
        relative = (requested or "").strip("/") or (entry_path or ENTRY_FILENAME)

        candidate = (base / relative).resolve()
        if candidate != base and base not in candidate.parents:
            raise AuthorizationError("Access denied")

        if candidate.is_dir():
            candidate = candidate / ENTRY_FILENAME
        if not candidate.is_file():
            raise NotFoundError("File not found")
        return candidate


def find_entry_file(names: List[str]) -> Optional[str]:
    """Pick the page a viewer opens first.

    Root ``index.html``, then ``index.html`` inside the single top-level
    directory, then the first HTML file in sorted order.
    """
    normalized = sorted(n.replace("\\", "/") for n in names)
    lowered = {n.lower(): n for n in normalized}

    if ENTRY_FILENAME in lowered:
        return lowered[ENTRY_FILENAME]

    top_level = {n.split("/", 1)[0] for n in normalized if "/" in n}
    root_files = [n for n in normalized if "/" not in n]
    if len(top_level) == 1 and not root_files:
        nested = f"{next(iter(top_level))}/{ENTRY_FILENAME}".lower()
        if nested in lowered:
            return lowered[nested]

    html_files = [n for n in normalized if n.lower().endswith(HTML_EXTENSIONS)]
    return html_files[0] if html_files else None
