"""
Test Import Service Module

This module tests the import runner including:
- Successful imports and result parsing
- Server, network and envelope failures
- Retries of errored items
- Items leaving the queue mid-upload
- Dashboard refresh signaling
"""

import pytest

from ledgersync.features.dashboard.refresh_orchestrator import DashboardRefreshOrchestrator
from ledgersync.features.uploadqueue.constants import ERROR_IMPORT_FAILED
from ledgersync.features.uploadqueue.import_service import ImportService, parse_import_result
from ledgersync.features.uploadqueue.models import UploadStatus
from ledgersync.features.uploadqueue.queue_store import UploadQueueStore
from ledgersync.shared.api_client import ApiError
from tests.conftest import make_file

TOKEN = "test-token"


class RecordingUploader:
    """Returns scripted results per file name and records what it saw."""

    def __init__(self, results):
        self.results = results
        self.calls = []
        self.seen_status = []
        self.store = None

    async def __call__(self, token, file):
        self.calls.append((token, file.name))
        if self.store is not None:
            item = next(item for item in self.store if item.file is file)
            self.seen_status.append((item.status, item.progress))
        result = self.results[file.name]
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def store():
    return UploadQueueStore()


@pytest.fixture
def orchestrator():
    return DashboardRefreshOrchestrator()


def make_service(store, orchestrator, results):
    uploader = RecordingUploader(results)
    uploader.store = store
    return ImportService(store, orchestrator, uploader=uploader), uploader


def test_parse_import_result_layouts():
    """Test counts from old and new response layouts"""
    meta = parse_import_result({"success": True, "importedCount": 7})
    assert meta.imported_count == 7
    assert meta.error_count == 0

    meta = parse_import_result({
        "success": True,
        "data": {"importedCount": 3, "errorCount": 2, "errorDetails": ["Row 2: bad date", "Row 9: no customer"]}
    })
    assert (meta.imported_count, meta.error_count) == (3, 2)
    assert meta.error_details == ["Row 2: bad date", "Row 9: no customer"]

    meta = parse_import_result({"success": True, "data": {"imported": [{}, {}], "errors": [{"row": 1}]}})
    assert (meta.imported_count, meta.error_count) == (2, 1)


@pytest.mark.asyncio
async def test_successful_import(store, orchestrator):
    """Test a file moving pending -> uploading -> completed"""
    store.admit([make_file("sales.xlsx", 100, 1)])
    service, uploader = make_service(store, orchestrator, {
        "sales.xlsx": {"success": True, "data": {"importedCount": 12, "errorCount": 1, "errorDetails": ["Row 4: bad"]}}
    })

    item = await service.import_item(TOKEN, "sales.xlsx-100-1")

    assert uploader.calls == [(TOKEN, "sales.xlsx")]
    assert uploader.seen_status == [(UploadStatus.UPLOADING, 10)]
    assert item.status == UploadStatus.COMPLETED
    assert item.progress == 100
    assert item.error is None
    assert item.meta.imported_count == 12
    assert item.meta.error_details == ["Row 4: bad"]
    assert orchestrator.refresh_trigger == 1


@pytest.mark.asyncio
async def test_zero_count_import_stays_completed(store, orchestrator):
    store.admit([make_file("empty.csv", 5, 1, "text/csv")])
    service, _ = make_service(store, orchestrator, {"empty.csv": {"success": True, "data": {}}})

    item = await service.import_item(TOKEN, "empty.csv-5-1")

    assert item.status == UploadStatus.COMPLETED
    assert item.meta.imported_count == 0
    assert item.meta.error_count == 0


@pytest.mark.asyncio
async def test_server_validation_error(store, orchestrator):
    """Test that a 400 with row errors lands on the item"""
    store.admit([make_file("bad.xlsx", 100, 1)])
    error = ApiError("Validation failed", status=400, validation_errors=["Row 2: missing amount"])
    service, _ = make_service(store, orchestrator, {"bad.xlsx": error})

    item = await service.import_item(TOKEN, "bad.xlsx-100-1")

    assert item.status == UploadStatus.ERROR
    assert item.error == "Validation failed"
    assert item.meta.error_details == ["Row 2: missing amount"]
    assert item.progress == 0
    assert orchestrator.refresh_trigger == 1


@pytest.mark.asyncio
async def test_network_error(store, orchestrator):
    store.admit([make_file("net.xlsx", 100, 1)])
    service, _ = make_service(store, orchestrator, {"net.xlsx": ConnectionResetError("Network Error")})

    item = await service.import_item(TOKEN, "net.xlsx-100-1")

    assert item.status == UploadStatus.ERROR
    assert item.error == "Network Error"
    assert item.meta is None


@pytest.mark.asyncio
async def test_unsuccessful_envelope(store, orchestrator):
    store.admit([make_file("a.xlsx", 1, 1), make_file("b.xlsx", 2, 2)])
    service, _ = make_service(store, orchestrator, {
        "a.xlsx": {"success": False, "message": "Unsupported template"},
        "b.xlsx": {"success": False}
    })

    assert (await service.import_item(TOKEN, "a.xlsx-1-1")).error == "Unsupported template"
    assert (await service.import_item(TOKEN, "b.xlsx-2-2")).error == ERROR_IMPORT_FAILED


@pytest.mark.asyncio
async def test_completed_and_missing_items_are_skipped(store, orchestrator):
    store.admit([make_file("done.xlsx", 1, 1)])
    service, uploader = make_service(store, orchestrator, {"done.xlsx": {"success": True, "importedCount": 1}})
    await service.import_item(TOKEN, "done.xlsx-1-1")

    item = await service.import_item(TOKEN, "done.xlsx-1-1")
    assert item.status == UploadStatus.COMPLETED
    assert await service.import_item(TOKEN, "missing-0-0") is None
    assert len(uploader.calls) == 1


@pytest.mark.asyncio
async def test_import_pending_runs_sequentially_and_retries_errors(store, orchestrator):
    """Test a full run across mixed outcomes, then a retry"""
    store.admit([make_file("a.xlsx", 1, 1), make_file("b.xlsx", 2, 2), make_file("c.xlsx", 3, 3)])
    service, uploader = make_service(store, orchestrator, {
        "a.xlsx": {"success": True, "importedCount": 5},
        "b.xlsx": ConnectionResetError("Network Error"),
        "c.xlsx": {"success": True, "data": {"importedCount": 2, "errorCount": 1, "errorDetails": ["Row 3: bad"]}}
    })

    summary = await service.import_pending(TOKEN)

    assert [name for _, name in uploader.calls] == ["a.xlsx", "b.xlsx", "c.xlsx"]
    assert summary.files == 3
    assert summary.imported_count == 7
    assert summary.error_count == 1
    assert summary.failed == ["b.xlsx: Network Error", "c.xlsx: 1 errors"]
    assert summary.validation_errors == ["c.xlsx: Row 3: bad"]
    assert orchestrator.refresh_trigger == 3

    # Only the errored item is retried
    uploader.results["b.xlsx"] = {"success": True, "importedCount": 4}
    summary = await service.import_pending(TOKEN)

    assert [name for _, name in uploader.calls][3:] == ["b.xlsx"]
    assert summary.imported_count == 4
    assert store.status_counts()["completed"] == 3
    assert orchestrator.refresh_trigger == 4


@pytest.mark.asyncio
async def test_import_pending_subset(store, orchestrator):
    store.admit([make_file("a.xlsx", 1, 1), make_file("b.xlsx", 2, 2)])
    service, uploader = make_service(store, orchestrator, {"b.xlsx": {"success": True, "importedCount": 1}})

    summary = await service.import_pending(TOKEN, ["b.xlsx-2-2"])

    assert uploader.calls == [(TOKEN, "b.xlsx")]
    assert summary.files == 1
    assert store.get("a.xlsx-1-1").status == UploadStatus.PENDING


@pytest.mark.asyncio
async def test_item_removed_during_upload(store, orchestrator):
    """Test that a result for a removed item is dropped without error"""
    store.admit([make_file("gone.xlsx", 1, 1)])

    async def uploader(token, file):
        store.remove("gone.xlsx-1-1")
        return {"success": True, "importedCount": 9}

    service = ImportService(store, orchestrator, uploader=uploader)
    summary = await service.import_pending(TOKEN)

    assert summary.files == 0
    assert len(store) == 0
    assert orchestrator.refresh_trigger == 1


@pytest.mark.asyncio
async def test_item_readded_during_upload_is_untouched(store, orchestrator):
    store.admit([make_file("again.xlsx", 1, 1)])

    async def uploader(token, file):
        store.remove("again.xlsx-1-1")
        store.admit([make_file("again.xlsx", 1, 1)])
        return {"success": True, "importedCount": 9}

    service = ImportService(store, orchestrator, uploader=uploader)
    assert await service.import_item(TOKEN, "again.xlsx-1-1") is None
    assert store.get("again.xlsx-1-1").status == UploadStatus.PENDING
