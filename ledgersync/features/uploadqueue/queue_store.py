"""
Upload Queue Store Module

This module holds the canonical list of files selected for import and
tracks each one from admission to completion.

Features:
- Admission with signature dedup
- Status updates by signature
- Renaming by id
- Removal and clearing
- Status counts

Data Model:
- Ordered queue (insertion order = display order)
- One item per signature
- Item owns its file

Dependencies:
- pydantic models
- logging for tracking

Author: Ledger Sync Development Team
"""

import logging
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union

from .models import (
    AdmissionResult,
    DuplicatePolicy,
    ImportFile,
    ImportMeta,
    InvalidStatusTransition,
    TERMINAL_STATUSES,
    UploadQueueItem,
    UploadStatus,
    can_transition,
    signature_from_file
)

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({"status", "progress", "error", "meta"})


class UploadQueueStore:
    """
    In-memory upload queue.

    Created once per session and handed to consumers. All mutations are
    synchronous replacements, so no interleaving can split an update.

    Attributes:
        _items: Queue items in insertion order
    """

    def __init__(self):
        self._items: List[UploadQueueItem] = []

    @property
    def items(self) -> List[UploadQueueItem]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[UploadQueueItem]:
        return iter(list(self._items))

    def _index_of(self, signature: str) -> Optional[int]:
        for index, item in enumerate(self._items):
            if item.signature == signature:
                return index
        return None

    def get(self, signature: str) -> Optional[UploadQueueItem]:
        index = self._index_of(signature)
        return self._items[index] if index is not None else None

    def get_by_id(self, item_id: str) -> Optional[UploadQueueItem]:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def admit(
        self,
        files: Iterable[ImportFile],
        on_duplicate: Union[DuplicatePolicy, str] = DuplicatePolicy.SKIP
    ) -> AdmissionResult:
        """
        Add files to the queue as pending items.

        Args:
            files: Files selected by the user
            on_duplicate: SKIP leaves the queued item untouched, REPLACE
                swaps in a fresh pending item at the same position

        Returns:
            AdmissionResult: Admitted items, skipped and replaced signatures

        Notes:
            - Dedup is queue-wide, any status counts (error included)
            - No network I/O
        """
        policy = DuplicatePolicy(on_duplicate)
        result = AdmissionResult()

        for file in files:
            if file is None:
                continue
            signature = signature_from_file(file)
            index = self._index_of(signature)
            already_admitted = any(item.signature == signature for item in result.admitted)

            if index is not None and (policy == DuplicatePolicy.SKIP or already_admitted):
                logger.debug(f"Skipping duplicate file {signature}")
                result.duplicates.append(signature)
                continue

            item = UploadQueueItem.from_file(file)
            if index is not None:
                old = self._items[index]
                old.file = None
                self._items[index] = item
                result.replaced.append(signature)
                logger.info(f"Replaced queued file {signature} ({old.status.value})")
            else:
                self._items.append(item)
                logger.info(f"Queued file {signature}")
            result.admitted.append(item)

        return result

    def remove(self, signature: str) -> Optional[UploadQueueItem]:
        """Drop an item and release its file. No-op if absent."""
        index = self._index_of(signature)
        if index is None:
            return None
        item = self._items.pop(index)
        item.file = None
        logger.info(f"Removed {signature} from upload queue")
        return item

    def update(self, signature: str, **changes: Any) -> Optional[UploadQueueItem]:
        """
        Merge fields into the item with this signature.

        Args:
            signature: Dedup key of the target item
            **changes: Any of status, progress, error, meta

        Returns:
            UploadQueueItem: The updated item, or None if absent

        Raises:
            InvalidStatusTransition: For a move the state machine forbids
            ValueError: For unknown fields or meta on a non-terminal status
        """
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update queue item fields: {', '.join(sorted(unknown))}")

        index = self._index_of(signature)
        if index is None:
            return None
        current = self._items[index]

        if "status" in changes:
            target = UploadStatus(changes["status"])
            if not can_transition(current.status, target):
                raise InvalidStatusTransition(signature, current.status, target)
            changes["status"] = target

        meta = changes.get("meta")
        if meta is not None:
            if not isinstance(meta, ImportMeta):
                meta = ImportMeta.model_validate(meta)
            if changes.get("status", current.status) not in TERMINAL_STATUSES:
                raise ValueError("Import meta can only be attached to completed or errored items")
            changes["meta"] = meta

        if changes.get("progress") is not None:
            changes["progress"] = min(100.0, max(0.0, float(changes["progress"])))

        updated = current.model_copy(update=changes)
        self._items[index] = updated
        return updated

    def update_by_file(self, file: ImportFile, **changes: Any) -> Optional[UploadQueueItem]:
        return self.update(signature_from_file(file), **changes)

    def rename(self, item_id: str, display_name: Optional[str]) -> Optional[UploadQueueItem]:
        """Set an item's display name. Blank names keep the current one."""
        for index, item in enumerate(self._items):
            if item.id != item_id:
                continue
            name = (display_name or "").strip()
            if not name:
                return item
            updated = item.model_copy(update={"display_name": name})
            self._items[index] = updated
            return updated
        return None

    def clear(self) -> None:
        for item in self._items:
            item.file = None
        count = len(self._items)
        self._items = []
        logger.info(f"Cleared upload queue ({count} items)")

    def pending_items(self) -> List[UploadQueueItem]:
        """Items that can be (re)submitted: pending or errored."""
        return [item for item in self._items if item.status in (UploadStatus.PENDING, UploadStatus.ERROR)]

    def status_counts(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in UploadStatus}
        for item in self._items:
            counts[item.status.value] += 1
        return counts
