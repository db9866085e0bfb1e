"""
Remittance endpoints.

`POST /remits/upload` ingests a file in the request and returns the
ingestion result. `POST /remits/upload-async` streams the file to
REMIT_FILE_DIR and queues the `process_remittance_file` Celery task.
"""
import os
import tempfile
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile, status
from sqlalchemy.orm import Session

from app.api.middleware.auth import get_current_user, require_roles
from app.config.database import get_db
from app.models.database import RemittanceStatus, User, UserRole
from app.services.queue.tasks import process_remittance_file
from app.services.remittance.processor import RemittanceProcessor
from app.utils.errors import ValidationError
from app.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)

REMIT_UPLOADERS = (UserRole.ADMIN, UserRole.MANAGER, UserRole.BILLER)
REMIT_FILE_DIR = os.getenv("REMIT_FILE_DIR", "/tmp/rcm_remittance_files")
CHUNK_SIZE = 8192  # 8KB chunks

# HTTP status for ingestion results that were rejected before any claim detail ran
REJECTED_STATUS = {
    "PARSE_FAILURE": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "STATE_CONFLICT": status.HTTP_409_CONFLICT,
}


def _decode(raw: bytes, filename: str) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ValidationError(
            "Remittance file must be UTF-8 text",
            details={"filename": filename, "position": e.start},
        ) from e


@router.post("/remits/upload")
async def upload_remit_file(
    response: Response,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*REMIT_UPLOADERS)),
):
    """
    Upload and process a remittance file now.

    **Response:**
    - 200 with `success: true` when every claim detail was posted
    - 200 with `success: false` and `failures` when some claim details failed;
      the remittance is left in ERROR
    - 422 when the file could not be parsed, 409 when the remittance number
      was already received
    """
    filename = file.filename or "unknown"
    logger.info("Received remittance file upload", filename=filename, user_id=user.id)

    content = _decode(await file.read(), filename)
    result = RemittanceProcessor(db).process_file(content, filename)

    if not result["success"] and result.get("code") in REJECTED_STATUS:
        response.status_code = REJECTED_STATUS[result["code"]]
    return result


@router.post("/remits/upload-async", status_code=status.HTTP_202_ACCEPTED)
async def upload_remit_file_async(
    file: UploadFile = File(...),
    user: User = Depends(require_roles(*REMIT_UPLOADERS)),
):
    """
    Upload a remittance file and queue it for processing.

    The file is streamed to disk in chunks and kept as the remittance's file
    reference. Returns the Celery task id.
    """
    filename = file.filename or "unknown"
    logger.info("Received remittance file for queued processing", filename=filename, user_id=user.id)

    os.makedirs(REMIT_FILE_DIR, exist_ok=True)
    temp_file = tempfile.NamedTemporaryFile(
        mode="wb",
        delete=False,
        dir=REMIT_FILE_DIR,
        prefix="era_",
        suffix=".txt",
    )
    temp_file_path = temp_file.name
    file_size = 0

    try:
        while True:
            chunk = await file.read(CHUNK_SIZE)
            if not chunk:
                break
            temp_file.write(chunk)
            file_size += len(chunk)
        temp_file.close()

        task = process_remittance_file.delay(file_path=temp_file_path, filename=filename)
    except Exception as e:
        temp_file.close()
        try:
            os.unlink(temp_file_path)
        except OSError as cleanup_error:
            logger.error(
                "Failed to delete temporary file during error cleanup",
                error=str(cleanup_error),
                filename=filename,
                temp_path=temp_file_path,
            )
        logger.error("Failed to queue remittance file", error=str(e), filename=filename)
        raise

    logger.info("Remittance file queued", filename=filename, task_id=task.id, size_bytes=file_size)
    return {
        "message": "File queued for processing",
        "task_id": task.id,
        "filename": filename,
        "size_bytes": file_size,
    }


@router.get("/remits")
async def get_remits(
    processing_status: Optional[RemittanceStatus] = Query(default=None, description="Filter by processing status"),
    skip: int = Query(default=0, ge=0, description="Number of records to skip"),
    limit: int = Query(default=100, ge=1, le=1000, description="Maximum number of records to return"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Get list of remittances, newest first."""
    remits = RemittanceProcessor(db).list_remittances(processing_status=processing_status, skip=skip, limit=limit)
    return {
        "remits": [
            {
                "id": remit.id,
                "remittance_number": remit.remittance_number,
                "payer_id": remit.payer_id,
                "payer_name": remit.payer_name,
                "check_amount": str(remit.check_amount) if remit.check_amount is not None else None,
                "check_date": remit.check_date.isoformat() if remit.check_date else None,
                "processing_status": remit.processing_status.value,
                "file_name": remit.file_name,
                "created_at": remit.created_at.isoformat() if remit.created_at else None,
            }
            for remit in remits
        ],
        "total": len(remits),
        "skip": skip,
        "limit": limit,
    }


@router.get("/remits/{remit_id}")
async def get_remit(
    remit_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Get one remittance with its claim details."""
    remit = RemittanceProcessor(db).get_remittance(remit_id)
    return {
        "id": remit.id,
        "remittance_number": remit.remittance_number,
        "payer_id": remit.payer_id,
        "payer_name": remit.payer_name,
        "check_number": remit.check_number,
        "check_date": remit.check_date.isoformat() if remit.check_date else None,
        "check_amount": str(remit.check_amount) if remit.check_amount is not None else None,
        "file_name": remit.file_name,
        "processing_status": remit.processing_status.value,
        "error_message": remit.error_message,
        "processed_date": remit.processed_date.isoformat() if remit.processed_date else None,
        "claim_details": [
            {
                "id": detail.id,
                "claim_id": detail.claim_id,
                "claim_number": detail.claim_number,
                "patient_name": detail.patient_name,
                "service_date_from": detail.service_date_from.isoformat() if detail.service_date_from else None,
                "service_date_to": detail.service_date_to.isoformat() if detail.service_date_to else None,
                "charge_amount": str(detail.charge_amount),
                "paid_amount": str(detail.paid_amount),
                "patient_responsibility": str(detail.patient_responsibility),
                "claim_status_code": detail.claim_status_code,
                "claim_status_description": detail.claim_status_description,
            }
            for detail in remit.claim_details
        ],
        "created_at": remit.created_at.isoformat() if remit.created_at else None,
    }
