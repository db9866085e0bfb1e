"""
Celery task definitions for asynchronous remittance ingestion.

The upload endpoint streams the file to disk and queues
``process_remittance_file`` with its path; the worker reads the file and runs
the same ingestion as a synchronous upload. Expected failures (parse errors,
duplicate remittances, failed claim details) are recorded on the remittance
and returned in the task result. Anything else is reported to Sentry and
re-raised so Celery marks the task failed.
"""
import os
from typing import Optional

from celery import Task
from sqlalchemy.orm import Session

from app.config.celery import celery_app
from app.config.database import SessionLocal
from app.config.sentry import add_breadcrumb, capture_exception, settings
from app.services.remittance.processor import RemittanceProcessor
from app.utils.logger import get_logger

logger = get_logger(__name__)


@celery_app.task(bind=True, name="process_remittance_file")
def process_remittance_file(
    self: Task,
    file_content: Optional[str] = None,
    file_path: Optional[str] = None,
    filename: Optional[str] = None,
):
    """
    Process a remittance file.

    Supports two modes:
    - Memory-based: file_content provided
    - File-based: file_path provided; the file is kept as the remittance's
      file reference
    """
    if not file_content and not file_path:
        raise ValueError("Either file_content or file_path must be provided")
    if file_content and file_path:
        raise ValueError("Cannot provide both file_content and file_path")

    filename = filename or (os.path.basename(file_path) if file_path else "unknown")

    if file_path:
        if not os.path.exists(file_path):
            raise FileNotFoundError(f"File not found: {file_path}")
        with open(file_path, "r", encoding="utf-8") as f:
            file_content = f.read()

    logger.info(
        "Processing remittance file",
        filename=filename,
        file_path=file_path,
        task_id=self.request.id,
    )
    add_breadcrumb(
        message=f"Processing remittance file: {filename}",
        category="celery_task",
        level="info",
        data={"task": "process_remittance_file", "filename": filename, "task_id": self.request.id},
    )

    db: Session = SessionLocal()
    try:
        result = RemittanceProcessor(db).process_file(file_content, filename, file_path=file_path)
        logger.info(
            "Remittance file processed",
            filename=filename,
            task_id=self.request.id,
            success=result["success"],
            remittance_id=result.get("remittance_id"),
        )
        return {"filename": filename, "task_id": self.request.id, **result}

    except Exception as e:
        logger.error(
            "Remittance file processing failed",
            filename=filename,
            task_id=self.request.id,
            error=str(e),
            exc_info=True,
        )
        add_breadcrumb(
            message=f"Remittance file processing failed: {filename}",
            category="celery_task",
            level="error",
            data={"task": "process_remittance_file", "filename": filename, "task_id": self.request.id},
        )

        if settings.enable_alerts:
            capture_exception(
                e,
                level="error",
                context={
                    "task": {
                        "name": "process_remittance_file",
                        "id": self.request.id,
                        "retries": self.request.retries,
                    },
                    "file": {
                        "filename": filename,
                        "file_path": file_path,
                        "size_bytes": len(file_content) if file_content else None,
                    },
                },
                tags={
                    "task": "process_remittance_file",
                    "error_type": type(e).__name__,
                },
            )

        db.rollback()
        raise

    finally:
        db.close()
