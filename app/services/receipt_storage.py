# app/services/receipt_storage.py
"""Local-directory receipt storage.

Receipts are addressed by an opaque URL of the form ``/api/receipts/<key>``;
the key is the stored file name.
"""

import logging
import os
import uuid

from fastapi import UploadFile

from app.core.config import settings
from app.core.constants import RECEIPT_EXTENSIONS
from app.core.exceptions import NotFoundOrForbidden, ValidationError

logger = logging.getLogger(__name__)

URL_PREFIX = "/api/receipts/"


def _receipts_dir() -> str:
    os.makedirs(settings.RECEIPTS_DIR, exist_ok=True)
    return settings.RECEIPTS_DIR


def key_from_url(url: str) -> str:
    key = url[len(URL_PREFIX):] if url.startswith(URL_PREFIX) else url
    # Never let a key escape the receipts directory
    return os.path.basename(key)


def path_for_key(key: str) -> str:
    return os.path.join(_receipts_dir(), os.path.basename(key))


def upload_receipt(file: UploadFile) -> str:
    ext = (file.filename.rsplit(".", 1)[-1] if file.filename and "." in file.filename else "").lower()
    if ext not in RECEIPT_EXTENSIONS:
        raise ValidationError(f"Unsupported file type: {ext or 'unknown'}")

    content = file.file.read()
    if not content:
        raise ValidationError("Receipt file is empty")
    if len(content) > settings.MAX_RECEIPT_BYTES:
        raise ValidationError("Receipt file is too large")

    key = f"{uuid.uuid4()}.{ext}"
    with open(path_for_key(key), "wb") as f:
        f.write(content)

    logger.info("Stored receipt %s (%s bytes)", key, len(content))
    return f"{URL_PREFIX}{key}"


def resolve_receipt(url: str) -> str:
    path = path_for_key(key_from_url(url))
    if not os.path.isfile(path):
        raise NotFoundOrForbidden("Receipt not found")
    return path


def delete_receipt(url: str) -> None:
    path = path_for_key(key_from_url(url))
    if not os.path.exists(path):
        logger.warning("Receipt %s already gone", url)
        return
    os.remove(path)
    logger.info("Deleted receipt %s", url)


def delete_receipts_quietly(urls) -> None:
    """Best-effort cleanup; storage errors are logged, never raised."""
    for url in urls or []:
        try:
            delete_receipt(url)
        except Exception:
            logger.exception("Failed to delete receipt %s", url)
