"""
Upload Queue Routes Module

This module exposes the import upload queue over HTTP: adding files,
renaming and removing queued items, and running the import.

Features:
- File admission with validation
- Duplicate policy selection
- Item rename and download
- Removal and clearing
- Import runs

Data Model:
- Queue items
- Admission results
- Import summaries

Security:
- File type and size validation
- Bearer token required for imports

Dependencies:
- FastAPI for routing
- python-multipart for uploads
- logging for tracking
- Pydantic for validation

Author: Ledger Sync Development Team
"""

import logging
from typing import List, Optional
from urllib.parse import quote

from fastapi import Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel

from . import router
from ledgersync.shared.auth import require_bearer_token
from ledgersync.shared.dependencies import get_session
from .constants import validate_import_file
from .models import DuplicatePolicy, ImportFile

logger = logging.getLogger(__name__)


class RenameRequest(BaseModel):
    """
    Rename payload.

    Attributes:
        display_name (Optional[str]): New label, blank keeps the current one
    """
    display_name: Optional[str] = None


class ImportRequest(BaseModel):
    """
    Import run payload.

    Attributes:
        signatures (Optional[List[str]]): Items to import, all pending when omitted
    """
    signatures: Optional[List[str]] = None


def _queue_payload(store) -> dict:
    return {
        "items": [item.model_dump(mode="json") for item in store],
        "counts": store.status_counts()
    }


logger.info("Registering import queue routes...")


@router.get("")
async def get_queue(session=Depends(get_session)):
    """List queued items in display order with status counts."""
    return {"status": "success", "data": _queue_payload(session.store)}


@router.post("/files")
async def add_files(
    files: List[UploadFile] = File(...),
    last_modified: Optional[List[int]] = Form(None),
    on_duplicate: DuplicatePolicy = DuplicatePolicy.SKIP,
    session=Depends(get_session)
):
    """
    Add files to the upload queue.

    Args:
        files: Uploaded files
        last_modified: Modification times in ms, matched to files by position
        on_duplicate: skip (default) or replace for already queued files

    Returns:
        dict: Admitted items, duplicate and replaced signatures, rejected files

    Notes:
        - Invalid files are rejected, not queued
        - Nothing is sent to the import endpoint here
    """
    try:
        stamps = last_modified or []
        accepted, rejected = [], []
        for index, upload in enumerate(files):
            content = await upload.read()
            file = ImportFile(
                name=upload.filename or "file",
                size=len(content),
                mime_type=upload.content_type or "",
                last_modified=stamps[index] if index < len(stamps) else 0,
                content=content
            )
            error = validate_import_file(file)
            if error:
                logger.warning(f"Rejected {file.name}: {error}")
                rejected.append({"name": file.name, "error": error})
                continue
            accepted.append(file)

        result = session.store.admit(accepted, on_duplicate=on_duplicate)
        logger.info(f"Admitted {len(result.admitted)} file(s), {len(result.duplicates)} duplicate(s), {len(rejected)} rejected")
        return {
            "status": "success",
            "data": {
                "admitted": [item.model_dump(mode="json") for item in result.admitted],
                "duplicates": result.duplicates,
                "replaced": result.replaced,
                "rejected": rejected
            }
        }
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error in add_files: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.patch("/items/{item_id}")
async def rename_item(item_id: str, request: RenameRequest, session=Depends(get_session)):
    """Rename a queued item by id."""
    item = session.store.rename(item_id, request.display_name)
    if item is None:
        raise HTTPException(status_code=404, detail="Queue item not found")
    return {"status": "success", "data": item.model_dump(mode="json")}


@router.get("/items/{item_id}/download")
async def download_item(item_id: str, session=Depends(get_session)):
    """Serve a queued file's bytes under its display name."""
    item = session.store.get_by_id(item_id)
    if item is None or item.file is None:
        raise HTTPException(status_code=404, detail="Queue item not found")
    return Response(
        content=item.file.content,
        media_type=item.mime_type or "application/octet-stream",
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(item.display_name)}"}
    )


@router.delete("/items/{signature:path}")
async def remove_item(signature: str, session=Depends(get_session)):
    """Remove a queued item by signature."""
    item = session.store.remove(signature)
    if item is None:
        raise HTTPException(status_code=404, detail="Queue item not found")
    return {"status": "success", "data": _queue_payload(session.store)}


@router.delete("")
async def clear_queue(session=Depends(get_session)):
    session.store.clear()
    return {"status": "success", "data": _queue_payload(session.store)}


@router.post("/import")
async def run_import(
    request: Optional[ImportRequest] = None,
    token: str = Depends(require_bearer_token),
    session=Depends(get_session)
):
    """
    Import pending and errored items one at a time.

    Returns:
        dict: Run summary and the queue after the run

    Notes:
        - Per-file failures are stored on the items, the run itself succeeds
        - Each finished file bumps the dashboard refresh trigger
    """
    try:
        signatures = request.signatures if request is not None else None
        summary = await session.import_service.import_pending(token, signatures)
        return {
            "status": "success",
            "data": {
                "summary": summary.model_dump(),
                "queue": _queue_payload(session.store)
            }
        }
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error in run_import: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
