import logging
import os
import shutil
import time
from typing import Optional

from fastapi import UploadFile

from errors import InvalidInput

logger = logging.getLogger(__name__)

FILE_TYPE_MAP = {
    "image/png": "png",
    "image/jpeg": "jpeg",
    "image/jpg": "jpg",
}

PUBLIC_PATH = "public/uploads"


class ImageStore:
    """Validates product images and writes them to the upload directory."""

    def __init__(self, upload_dir: str):
        self.upload_dir = upload_dir

    def validate(self, upload: Optional[UploadFile]) -> str:
        """Return the file extension for an acceptable upload, else raise InvalidInput."""
        if upload is None or not upload.filename:
            raise InvalidInput("No image in the request")
        extension = FILE_TYPE_MAP.get(upload.content_type)
        if not extension:
            raise InvalidInput("Invalid image type")
        return extension

    @staticmethod
    def filename_for(original: str, extension: str, now_ms: Optional[int] = None) -> str:
        stamp = now_ms if now_ms is not None else int(time.time() * 1000)
        return f"{'-'.join(original.split(' '))}-{stamp}.{extension}"

    def save(self, upload: UploadFile, base_url: str) -> str:
        extension = self.validate(upload)
        filename = self.filename_for(os.path.basename(upload.filename), extension)
        os.makedirs(self.upload_dir, exist_ok=True)
        with open(os.path.join(self.upload_dir, filename), "wb") as out:
            shutil.copyfileobj(upload.file, out)
        logger.info("Stored upload %s", filename)
        return f"{base_url.rstrip('/')}/{PUBLIC_PATH}/{filename}"

    def discard(self, image_url: str) -> None:
        """Remove a stored upload by its public URL; missing files are ignored."""
        path = os.path.join(self.upload_dir, image_url.rsplit("/", 1)[-1])
        if os.path.exists(path):
            os.remove(path)
            logger.info("Discarded upload %s", os.path.basename(path))
