"""Tests for UploadService and entry-file detection.

Tests cover:
- Storing single HTML pages and ZIP archives
- Rejecting unsupported, oversized, corrupt and unsafe uploads
- Backslash-separated archives and the extracted-size cap
- Entry file selection
- Resolving served paths inside the prototype directory
"""

import io
import zipfile

import pytest

from showcase.core.exceptions import (
    AuthorizationError,
    NotFoundError,
    PayloadTooLargeError,
    ValidationError,
)
from showcase.core.prototype import UploadService, find_entry_file

from conftest import SAMPLE_HTML, make_zip

PID = "3f0b8c1e-0000-4000-8000-000000000001"


@pytest.fixture
def uploads(tmp_path):
    return UploadService(str(tmp_path / "uploads"), max_upload_size_mb=1)


# ── Tests: Storing ───────────────────────────────────────────────────────


class TestProcessUpload:
    """Tests for process_upload."""

    def test_html_saved_as_index(self, uploads):
        result = uploads.process_upload("Landing.HTM", SAMPLE_HTML, PID)

        assert result.type == "html"
        assert result.file_path == "index.html"
        assert (uploads.prototype_dir(PID) / "index.html").read_bytes() == SAMPLE_HTML

    def test_zip_extracted(self, uploads):
        archive = make_zip({
            "index.html": b"<html>home</html>",
            "css/site.css": b"body {}",
            "__MACOSX/._index.html": b"junk",
            ".DS_Store": b"junk",
        })
        result = uploads.process_upload("site.zip", archive, PID)

        base = uploads.prototype_dir(PID)
        assert result.type == "zip"
        assert result.file_path == "index.html"
        assert result.files_written == 2
        assert (base / "css" / "site.css").exists()
        assert not (base / "__MACOSX").exists()
        assert not (base / ".DS_Store").exists()

    def test_reupload_replaces_previous_files(self, uploads):
        uploads.process_upload("site.zip", make_zip({"index.html": b"a", "old.js": b"x"}), PID)
        uploads.process_upload("page.html", SAMPLE_HTML, PID)

        base = uploads.prototype_dir(PID)
        assert not (base / "old.js").exists()
        assert (base / "index.html").read_bytes() == SAMPLE_HTML

    def test_missing_file(self, uploads):
        with pytest.raises(ValidationError, match="A file \\(HTML or ZIP\\) is required"):
            uploads.process_upload(None, b"", PID)

    def test_unsupported_type(self, uploads):
        with pytest.raises(ValidationError, match="Only HTML or ZIP files are accepted"):
            uploads.process_upload("design.pdf", b"%PDF", PID)

    def test_too_large(self, uploads):
        with pytest.raises(PayloadTooLargeError, match="Maximum is 1MB"):
            uploads.process_upload("big.html", b"x" * (1024 * 1024 + 1), PID)

    def test_corrupt_zip(self, uploads):
        with pytest.raises(ValidationError, match="Invalid ZIP file"):
            uploads.process_upload("broken.zip", b"PK not really a zip", PID)

    def test_zip_without_html(self, uploads):
        with pytest.raises(ValidationError, match="ZIP archive contains no HTML file"):
            uploads.process_upload("assets.zip", make_zip({"logo.png": b"\x89PNG"}), PID)
        assert not uploads.prototype_dir(PID).exists()

    @pytest.mark.parametrize("evil", ["../escape.html", "/etc/cron.d/evil", "a/../../escape.html"])
    def test_path_traversal_rejected(self, uploads, tmp_path, evil):
        archive = make_zip({"index.html": b"ok", evil: b"pwned"})

        with pytest.raises(ValidationError, match="Unsafe path in ZIP archive"):
            uploads.process_upload("evil.zip", archive, PID)

        assert not uploads.prototype_dir(PID).exists()
        assert not (tmp_path / "escape.html").exists()

    def test_backslash_separators(self, uploads):
        archive = make_zip({"site\\index.html": b"<html>home</html>", "site\\app.css": b"body {}"})
        result = uploads.process_upload("proto.zip", archive, PID)

        base = uploads.prototype_dir(PID)
        assert result.file_path == "site/index.html"
        assert result.files_written == 2
        assert (base / "site" / "index.html").read_bytes() == b"<html>home</html>"
        assert (base / "site" / "app.css").exists()

    def test_backslash_traversal_rejected(self, uploads):
        archive = make_zip({"index.html": b"ok", "..\\escape.html": b"pwned"})

        with pytest.raises(ValidationError, match="Unsafe path in ZIP archive"):
            uploads.process_upload("evil.zip", archive, PID)

    def test_extracted_size_capped(self, uploads, tmp_path):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
            zf.writestr("index.html", b"<html></html>")
            zf.writestr("padding.bin", b"\0" * (5 * 1024 * 1024))
        archive = buffer.getvalue()
        assert len(archive) < 1024 * 1024

        with pytest.raises(PayloadTooLargeError, match="ZIP contents too large when extracted. Maximum is 4MB"):
            uploads.process_upload("bomb.zip", archive, PID)

        assert not uploads.prototype_dir(PID).exists()
        assert not list((tmp_path / "uploads" / "prototypes").iterdir())

    def test_failed_reupload_keeps_previous_version(self, uploads):
        uploads.process_upload("page.html", SAMPLE_HTML, PID)

        with pytest.raises(ValidationError):
            uploads.process_upload("assets.zip", make_zip({"logo.png": b"\x89PNG"}), PID)

        assert (uploads.prototype_dir(PID) / "index.html").read_bytes() == SAMPLE_HTML

    def test_delete_files(self, uploads):
        uploads.process_upload("page.html", SAMPLE_HTML, PID)

        assert uploads.delete_prototype_files(PID) is True
        assert not uploads.prototype_dir(PID).exists()
        assert uploads.delete_prototype_files(PID) is False


# ── Tests: Entry file ────────────────────────────────────────────────────


class TestFindEntryFile:
    """Tests for find_entry_file."""

    def test_root_index_wins(self):
        assert find_entry_file(["about.html", "index.html", "app/index.html"]) == "index.html"

    def test_index_in_single_top_level_dir(self):
        assert find_entry_file(["app/index.html", "app/about.html", "app/css/a.css"]) == "app/index.html"

    def test_first_html_alphabetically(self):
        assert find_entry_file(["zeta.html", "docs/readme.txt", "alpha.htm"]) == "alpha.htm"

    def test_no_html(self):
        assert find_entry_file(["readme.md", "logo.png"]) is None

    def test_case_insensitive_index(self):
        assert find_entry_file(["INDEX.HTML", "other.html"]) == "INDEX.HTML"


# ── Tests: Serving ───────────────────────────────────────────────────────


class TestResolveFile:
    """Tests for resolve_file."""

    @pytest.fixture
    def stored(self, uploads):
        uploads.process_upload("site.zip", make_zip({
            "app/index.html": b"<html>app</html>",
            "app/pages/index.html": b"<html>pages</html>",
            "app/js/main.js": b"console.log(1)",
        }), PID)
        return uploads

    def test_empty_path_serves_entry(self, stored):
        assert stored.resolve_file(PID, "app/index.html", "").read_bytes() == b"<html>app</html>"

    def test_nested_file(self, stored):
        assert stored.resolve_file(PID, "app/index.html", "app/js/main.js").name == "main.js"

    def test_directory_serves_its_index(self, stored):
        assert stored.resolve_file(PID, "app/index.html", "app/pages/").read_bytes() == b"<html>pages</html>"

    def test_missing_file(self, stored):
        with pytest.raises(NotFoundError):
            stored.resolve_file(PID, "app/index.html", "app/nope.html")

    def test_traversal_denied(self, stored):
        with pytest.raises(AuthorizationError):
            stored.resolve_file(PID, "app/index.html", "../../../etc/passwd")
