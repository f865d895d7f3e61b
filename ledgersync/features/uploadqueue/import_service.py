"""
Import Service Module

This module uploads queued files to the import endpoint and records the
outcome on each queue item.

Features:
- Sequential file imports
- Retry of errored items
- Response normalization
- Row-level error capture
- Dashboard refresh signaling

Data Model:
- Queue items (status, progress, meta)
- Import responses {success, importedCount, data}
- Run summaries

Dependencies:
- aiohttp via ApiClient
- asyncio for run serialization
- logging for tracking

Author: Ledger Sync Development Team
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

from ledgersync.shared.api_client import ApiClient, ApiError
from .constants import IMPORT_ENDPOINT, ERROR_IMPORT_FAILED, ERROR_IMPORT_EXCEPTION
from .models import ImportFile, ImportMeta, ImportSummary, UploadQueueItem, UploadStatus
from .queue_store import UploadQueueStore

logger = logging.getLogger(__name__)

Uploader = Callable[[str, ImportFile], Awaitable[Dict[str, Any]]]


async def import_file(token: str, file: ImportFile, client: Optional[ApiClient] = None) -> Dict[str, Any]:
    """
    Send one file to the sales invoice import endpoint.

    Args:
        token: Bearer token
        file: File to upload
        client: Optional preconfigured API client

    Returns:
        dict: Raw import response

    Raises:
        ApiError: For rejected uploads (400 carries validation details)
    """
    client = client or ApiClient(token)
    logger.info(f"Starting import for file: {file.name} ({file.size} bytes, {file.mime_type or 'unknown type'})")
    return await client.post_file(IMPORT_ENDPOINT, file.name, file.content, content_type=file.mime_type or None)


def _count(value: Any) -> int:
    if isinstance(value, (list, tuple)):
        return len(value)
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def parse_import_result(result: Dict[str, Any]) -> ImportMeta:
    """Read counts from old and new response layouts."""
    data = result.get("data") if isinstance(result.get("data"), dict) else {}
    imported = result.get("importedCount") or data.get("importedCount") or data.get("imported") or 0
    errors = data.get("errorCount") or data.get("errors") or 0
    details = data.get("errorDetails") or []
    return ImportMeta(
        imported_count=_count(imported),
        error_count=_count(errors),
        error_details=[str(detail) for detail in details] if isinstance(details, list) else [str(details)]
    )


class ImportService:
    """
    Import runner for the upload queue.

    Attributes:
        store: Queue the items live in
        orchestrator: Receives trigger_refresh() after every completion
        uploader: Coroutine sending one file
    """

    def __init__(
        self,
        store: UploadQueueStore,
        orchestrator=None,
        uploader: Uploader = import_file
    ):
        self.store = store
        self.orchestrator = orchestrator
        self.uploader = uploader
        self._run_lock = asyncio.Lock()

    def _record(self, item_id: str, signature: str, **changes: Any) -> Optional[UploadQueueItem]:
        current = self.store.get(signature)
        if current is None or current.id != item_id:
            logger.info(f"Dropping import result for {signature}: item left the queue")
            return None
        return self.store.update(signature, **changes)

    async def import_item(self, token: str, signature: str) -> Optional[UploadQueueItem]:
        """
        Upload one queued file and record the outcome on its item.

        Args:
            token: Bearer token
            signature: Item to import

        Returns:
            UploadQueueItem: Item after the attempt, or None if it left the queue

        Notes:
            - Failures are stored on the item, never raised
            - Completed does not imply rows were imported, check meta
        """
        item = self.store.get(signature)
        if item is None or item.file is None:
            logger.warning(f"Skipping import for {signature}: not in queue")
            return None
        if item.status not in (UploadStatus.PENDING, UploadStatus.ERROR):
            logger.info(f"Skipping import for {signature}: status is {item.status.value}")
            return item

        file = item.file
        self.store.update(signature, status=UploadStatus.UPLOADING, progress=10, error=None, meta=None)

        try:
            result = await self.uploader(token, file)
        except ApiError as e:
            logger.error(f"Import error for {file.name}: {e.message} (status {e.status})")
            details = list(e.validation_errors) or ([e.details] if e.details else [])
            updated = self._record(
                item.id,
                signature,
                status=UploadStatus.ERROR,
                progress=0,
                error=e.message or ERROR_IMPORT_EXCEPTION,
                meta=ImportMeta(error_count=len(details), error_details=details) if details else None
            )
        except Exception as e:
            logger.error(f"Error in import_item for {file.name}: {str(e)}")
            updated = self._record(
                item.id,
                signature,
                status=UploadStatus.ERROR,
                progress=0,
                error=str(e) or ERROR_IMPORT_EXCEPTION
            )
        else:
            if isinstance(result, dict) and result.get("success"):
                meta = parse_import_result(result)
                logger.info(f"Import successful for {file.name}: {meta.imported_count} imported, {meta.error_count} errors")
                updated = self._record(item.id, signature, status=UploadStatus.COMPLETED, progress=100, error=None, meta=meta)
            else:
                message = (result or {}).get("message") if isinstance(result, dict) else None
                logger.error(f"Import rejected for {file.name}: {message or ERROR_IMPORT_FAILED}")
                updated = self._record(item.id, signature, status=UploadStatus.ERROR, progress=0, error=message or ERROR_IMPORT_FAILED)

        if self.orchestrator is not None:
            self.orchestrator.trigger_refresh()
        return updated

    async def import_pending(self, token: str, signatures: Optional[Iterable[str]] = None) -> ImportSummary:
        """
        Import every pending or errored item, one at a time.

        Args:
            token: Bearer token
            signatures: Optional subset to import

        Returns:
            ImportSummary: Totals across the run
        """
        async with self._run_lock:
            wanted = set(signatures) if signatures is not None else None
            targets = [
                item.signature for item in self.store.pending_items()
                if wanted is None or item.signature in wanted
            ]
            summary = ImportSummary()
            logger.info(f"Import run started for {len(targets)} file(s)")

            for signature in targets:
                item = await self.import_item(token, signature)
                if item is None:
                    continue
                summary.files += 1
                if item.status == UploadStatus.COMPLETED:
                    summary.imported_count += item.meta.imported_count if item.meta else 0
                    summary.error_count += item.meta.error_count if item.meta else 0
                    if item.meta and item.meta.error_count:
                        summary.failed.append(f"{item.display_name}: {item.meta.error_count} errors")
                elif item.status == UploadStatus.ERROR:
                    summary.failed.append(f"{item.display_name}: {item.error}")
                if item.meta:
                    summary.validation_errors.extend(f"{item.display_name}: {detail}" for detail in item.meta.error_details)

            logger.info(f"Import run finished: {summary.imported_count} records from {summary.files} file(s), {len(summary.failed)} problem(s)")
            return summary
