# app/api/receipts.py

import logging
from mimetypes import guess_type

from fastapi import APIRouter, Depends, File, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.auth import get_current_user
from app.models.user import User
from app.services import expense_service
from app.services.receipt_storage import resolve_receipt, upload_receipt

logger = logging.getLogger(__name__)

# main.py mounts this router at /api/receipts, which is also the URL prefix
# handed back for stored receipts.
router = APIRouter(tags=["Receipts"])


@router.post("", status_code=status.HTTP_201_CREATED)
def upload(
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
):
    url = upload_receipt(file)
    logger.info("Receipt %s uploaded by %s", url, current_user.id)
    return {"url": url, "filename": file.filename}


@router.get("/{key}")
def download(
    key: str,
    current_user: User = Depends(get_current_user),
):
    path = resolve_receipt(key)
    media_type = guess_type(path)[0] or "application/octet-stream"
    return FileResponse(path, media_type=media_type)


@router.delete("/{key}", status_code=status.HTTP_204_NO_CONTENT)
def delete(
    key: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    expense_service.remove_receipt(db, key, current_user.id)
    return None
