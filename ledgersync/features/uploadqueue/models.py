"""
Upload Queue Models Module

This module defines the data models used by the import upload queue.

Features:
- File snapshot model
- Queue item model
- Status state machine
- Import result metadata
- Admission results

Data Model:
- File metadata (name, size, type, last modified)
- Dedup signature
- Upload status and progress
- Import counts and row errors

Dependencies:
- pydantic for data validation
- typing for type hints
- uuid for item ids

Author: Ledger Sync Development Team
"""

import os
import uuid
import mimetypes
from enum import Enum
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .constants import (
    UPLOAD_STATUS_PENDING,
    UPLOAD_STATUS_UPLOADING,
    UPLOAD_STATUS_COMPLETED,
    UPLOAD_STATUS_ERROR
)


class UploadStatus(str, Enum):
    """Lifecycle of one queued file."""

    PENDING = UPLOAD_STATUS_PENDING
    UPLOADING = UPLOAD_STATUS_UPLOADING
    COMPLETED = UPLOAD_STATUS_COMPLETED
    ERROR = UPLOAD_STATUS_ERROR


# Same-state updates (progress ticks) are always allowed
ALLOWED_TRANSITIONS: Dict[UploadStatus, FrozenSet[UploadStatus]] = {
    UploadStatus.PENDING: frozenset({UploadStatus.PENDING, UploadStatus.UPLOADING}),
    UploadStatus.UPLOADING: frozenset({UploadStatus.UPLOADING, UploadStatus.COMPLETED, UploadStatus.ERROR}),
    UploadStatus.ERROR: frozenset({UploadStatus.ERROR, UploadStatus.UPLOADING}),
    UploadStatus.COMPLETED: frozenset({UploadStatus.COMPLETED}),
}

TERMINAL_STATUSES = frozenset({UploadStatus.COMPLETED, UploadStatus.ERROR})


def can_transition(current: UploadStatus, target: UploadStatus) -> bool:
    """Return True if an item may move from current to target."""
    return UploadStatus(target) in ALLOWED_TRANSITIONS[UploadStatus(current)]


class InvalidStatusTransition(ValueError):
    """Raised when an update would break the upload state machine."""

    def __init__(self, signature: str, current: UploadStatus, target: UploadStatus):
        super().__init__(f"Cannot move {signature} from {current.value} to {target.value}")
        self.signature = signature
        self.current = current
        self.target = target


class ImportMeta(BaseModel):
    """
    Import result attached on completion or error.

    Attributes:
        imported_count (int): Rows persisted by the server
        error_count (int): Rows rejected by the server
        error_details (List[str]): Row-level validation failures
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    imported_count: int = 0
    error_count: int = 0
    error_details: List[str] = Field(default_factory=list)


class ImportFile(BaseModel):
    """
    A file selected for import.

    Attributes:
        name (str): Original file name
        size (int): Size in bytes
        mime_type (str): MIME type, may be empty
        last_modified (int): Modification time in ms since epoch
        content (bytes): File bytes, never serialized
    """
    name: str
    size: int = 0
    mime_type: str = ""
    last_modified: int = 0
    content: bytes = Field(default=b"", exclude=True, repr=False)

    @classmethod
    def from_path(cls, path: Union[str, Path], mime_type: Optional[str] = None) -> "ImportFile":
        """Snapshot a file on disk."""
        path = Path(path)
        stat = os.stat(path)
        guessed, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            size=stat.st_size,
            mime_type=mime_type or guessed or "",
            last_modified=int(stat.st_mtime * 1000),
            content=path.read_bytes()
        )


def signature_from_file(file: ImportFile) -> str:
    """Dedup key for a file: name, size and modification time."""
    if file is None:
        return ""
    return f"{file.name or 'file'}-{file.size or 0}-{file.last_modified or 0}"


class UploadQueueItem(BaseModel):
    """
    One file's lifecycle in the upload queue.

    Attributes:
        id (str): Opaque id assigned at admission
        signature (str): Dedup key, fixed for the item's lifetime
        file (Optional[ImportFile]): Owned file, dropped on removal
        display_name (str): User-editable label
        size (int): Size snapshot
        mime_type (str): Type snapshot
        last_modified (int): Modification time snapshot
        status (UploadStatus): Current state
        progress (float): Advisory 0-100
        error (Optional[str]): Failure message
        meta (Optional[ImportMeta]): Import result
    """
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    signature: str
    file: Optional[ImportFile] = Field(default=None, exclude=True, repr=False)
    display_name: str
    size: int = 0
    mime_type: str = ""
    last_modified: int = 0
    status: UploadStatus = UploadStatus.PENDING
    progress: float = 0
    error: Optional[str] = None
    meta: Optional[ImportMeta] = None

    @classmethod
    def from_file(cls, file: ImportFile) -> "UploadQueueItem":
        return cls(
            signature=signature_from_file(file),
            file=file,
            display_name=file.name,
            size=file.size,
            mime_type=file.mime_type,
            last_modified=file.last_modified
        )


class DuplicatePolicy(str, Enum):
    """What admission does with a file whose signature is already queued."""

    SKIP = "skip"
    REPLACE = "replace"


class AdmissionResult(BaseModel):
    """
    Outcome of one admit call.

    Attributes:
        admitted (List[UploadQueueItem]): New items, in queue order
        duplicates (List[str]): Signatures skipped as already queued
        replaced (List[str]): Signatures whose old item was replaced
    """
    admitted: List[UploadQueueItem] = Field(default_factory=list)
    duplicates: List[str] = Field(default_factory=list)
    replaced: List[str] = Field(default_factory=list)


class ImportSummary(BaseModel):
    """Totals for one import run across the queue."""
    files: int = 0
    imported_count: int = 0
    error_count: int = 0
    failed: List[str] = Field(default_factory=list)
    validation_errors: List[str] = Field(default_factory=list)
