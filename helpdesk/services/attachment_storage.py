"""
Attachment storage on the local filesystem.

Files land in ``UPLOAD_FOLDER`` as ``<millis>_<secure filename>`` and are
referenced from the database by the relative path ``/uploads/<name>``.
``remove`` undoes a partial save when ticket creation rolls back.
"""

from __future__ import annotations

import logging
import os
import time

from werkzeug.utils import secure_filename

from helpdesk.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

URL_PREFIX = "/uploads/"


class AttachmentStorage:

    def __init__(self, folder: str, *, max_files: int = 5, allowed_extensions=None):
        self.folder = folder
        self.max_files = max_files
        self.allowed_extensions = {e.lower().lstrip(".") for e in (allowed_extensions or ())}

    def validate(self, files) -> None:
        if len(files) > self.max_files:
            raise ValidationError(
                f"At most {self.max_files} attachments are allowed",
                details={"attachments": len(files)},
            )
        for storage in files:
            name = secure_filename(storage.filename or "")
            if not name:
                raise ValidationError("Attachment has no usable filename")
            ext = name.rsplit(".", 1)[-1].lower() if "." in name else ""
            if self.allowed_extensions and ext not in self.allowed_extensions:
                raise ValidationError(
                    f"File type .{ext or '?'} is not allowed",
                    details={"filename": storage.filename},
                )

    def save(self, files) -> list[str]:
        """Write every file; on failure remove the ones already written and re-raise."""
        os.makedirs(self.folder, exist_ok=True)
        written: list[str] = []
        try:
            for storage in files:
                millis = int(time.time() * 1000)
                base = secure_filename(storage.filename)
                while os.path.exists(os.path.join(self.folder, f"{millis}_{base}")):
                    millis += 1
                name = f"{millis}_{base}"
                storage.save(os.path.join(self.folder, name))
                written.append(URL_PREFIX + name)
        except OSError:
            self.remove(written)
            raise
        return written

    def remove(self, paths) -> None:
        for path in paths:
            name = path[len(URL_PREFIX):] if path.startswith(URL_PREFIX) else os.path.basename(path)
            full = os.path.join(self.folder, name)
            try:
                os.remove(full)
            except FileNotFoundError:
                continue
            except OSError as exc:
                logger.warning("Could not remove attachment %s: %s", full, exc)
