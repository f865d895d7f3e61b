"""
Upload Queue Constants Module

This module defines constants used throughout the import queue
for configuration, status codes, and file acceptance.

Features:
- Status codes
- File type definitions
- Configuration values
- Error messages

Dependencies:
- None (pure Python)

Author: Ledger Sync Development Team
"""

from typing import Optional

# Upload status codes
UPLOAD_STATUS_PENDING = "pending"  # Admitted, not yet sent
UPLOAD_STATUS_UPLOADING = "uploading"  # Upload in flight
UPLOAD_STATUS_COMPLETED = "completed"  # Server confirmed the import (check meta for counts)
UPLOAD_STATUS_ERROR = "error"  # Network or parse failure

# File type definitions
ALLOWED_FILE_TYPES = [  # Spreadsheet MIME types accepted for import
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",  # .xlsx
    "application/vnd.ms-excel",  # .xls
    "text/csv",
    "application/csv"
]
ALLOWED_EXTENSIONS = [".xlsx", ".xls", ".csv"]

# Configuration values
MAX_FILE_SIZE = 10 * 1024 * 1024  # Maximum file size in bytes (10MB)
IMPORT_ENDPOINT = "/import/sales-invoice"

# Error messages
ERROR_INVALID_FILE_TYPE = "Please select a valid file (.xlsx, .xls, or .csv)"
ERROR_FILE_TOO_LARGE = "File size must be less than 10MB"
ERROR_IMPORT_FAILED = "Import failed"
ERROR_IMPORT_EXCEPTION = "Failed to import"


def validate_import_file(file) -> Optional[str]:
    """
    Check a file against the accepted types and size limit.

    Args:
        file: ImportFile candidate

    Returns:
        str: Rejection message, or None when the file is acceptable
    """
    name = (file.name or "").lower()
    type_ok = file.mime_type in ALLOWED_FILE_TYPES or any(name.endswith(ext) for ext in ALLOWED_EXTENSIONS)
    if not type_ok:
        return ERROR_INVALID_FILE_TYPE
    if file.size > MAX_FILE_SIZE:
        return ERROR_FILE_TOO_LARGE
    return None
