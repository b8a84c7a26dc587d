import os
from datetime import datetime, timezone
from pathlib import Path
from uuid import uuid4

from flask import current_app
from PIL import Image
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from rentwise.errors import InvalidArgumentError

ALLOWED_EXTENSIONS = {"png", "jpg", "jpeg", "webp"}


class FileService:
    @staticmethod
    def _is_allowed(filename):
        return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS

    @classmethod
    def save_image(cls, storage: FileStorage, upload_root: str):
        if not storage or not storage.filename:
            raise InvalidArgumentError("Image file is required.")

        filename = secure_filename(storage.filename)
        if not filename or not cls._is_allowed(filename):
            raise InvalidArgumentError("Unsupported image format.")

        # Verify actual image bytes to avoid extension spoofing.
        try:
            img = Image.open(storage.stream)
            img.verify()
            storage.stream.seek(0)
        except Exception as exc:
            raise InvalidArgumentError("Invalid image file.") from exc

        dated_folder = datetime.now(timezone.utc).strftime("%Y/%m/%d")
        folder = Path(upload_root) / dated_folder
        folder.mkdir(parents=True, exist_ok=True)

        extension = filename.rsplit(".", 1)[1].lower()
        unique_filename = f"{uuid4().hex}.{extension}"
        storage.save(folder / unique_filename)

        return f"{dated_folder}/{unique_filename}"

    @staticmethod
    def delete_image(image_path: str, upload_root: str):
        absolute_path = Path(upload_root) / image_path
        try:
            os.remove(absolute_path)
        except FileNotFoundError:
            current_app.logger.info("Image %s already removed", absolute_path)
        except OSError as exc:
            current_app.logger.warning("Could not remove image %s: %s", absolute_path, exc)
