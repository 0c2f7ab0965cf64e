"""
Board import router: preview an upload, then run the bulk or sequential import.

The sequential import streams NDJSON events so the client can show per-task
progress; dropping the connection cancels the remaining tasks.
"""
import asyncio
import json
import logging
from typing import Optional, Set

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import StreamingResponse

from ..config import Settings
from ..dependencies import get_board_snapshot, get_board_storage, get_import_settings
from ..schemas.board_import import (
    ImportPreviewResponse,
    BulkImportRequest,
    BulkImportResponse,
    SequentialImportRequest,
)
from ..services.board_import_service import execute_bulk_import, BoardImportError
from ..services.board_service import BoardSnapshot
from ..services.board_storage import BoardStorage
from ..services.import_mapping import auto_map_columns, get_unique_column_names
from ..services.import_parsers import parse_import_payload, UnsupportedImportFormat
from ..services.sequential_import_service import (
    insert_tasks_sequentially,
    SequentialCallbacks,
    CancellationToken,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/ideas/{idea_id}/board/import", tags=["board-import"])

ALLOWED_FORMATS = ("csv", "json", "text")

# Sequential runs outlive the request handler that started them
_running_imports: Set[asyncio.Task] = set()


def _require_column(snapshot: BoardSnapshot, column_id: str):
    if not any(c.id == column_id for c in snapshot.columns):
        raise HTTPException(status_code=400, detail="Default column does not belong to this board")


@router.post("/preview", response_model=ImportPreviewResponse)
async def preview_board_import(
    idea_id: str,
    source_format: str = Form(..., alias="format"),
    file: Optional[UploadFile] = File(None),
    text: Optional[str] = Form(None),
    snapshot: BoardSnapshot = Depends(get_board_snapshot),
):
    """
    Parse an uploaded file (or pasted text) into tasks and suggest mappings.
    Nothing is written.
    """
    if source_format not in ALLOWED_FORMATS:
        raise HTTPException(status_code=400, detail=f"Format must be one of: {', '.join(ALLOWED_FORMATS)}")

    if file is not None:
        content = await file.read()
        try:
            raw = content.decode("utf-8-sig")  # Handle BOM
        except UnicodeDecodeError:
            raise HTTPException(status_code=400, detail="File encoding not supported. Please use UTF-8.")
    elif text is not None:
        raw = text
    else:
        raise HTTPException(status_code=400, detail="Provide a file or text to import")

    try:
        parsed = parse_import_payload(source_format, raw)
    except UnsupportedImportFormat as e:
        raise HTTPException(status_code=400, detail=str(e))
    except json.JSONDecodeError as e:
        raise HTTPException(status_code=400, detail=f"Invalid JSON: {e}")

    column_names = get_unique_column_names(parsed.tasks)
    logger.info(f"[Import] Preview for idea {idea_id}: {len(parsed.tasks)} tasks ({parsed.format})")

    return ImportPreviewResponse(
        format=parsed.format,
        tasks=parsed.tasks,
        csv_headers=parsed.csv_headers,
        csv_mapping=parsed.csv_mapping,
        column_names=column_names,
        column_mapping=auto_map_columns(column_names, snapshot.columns),
    )


@router.post("/execute", response_model=BulkImportResponse)
async def execute_board_import(
    idea_id: str,
    request: BulkImportRequest,
    snapshot: BoardSnapshot = Depends(get_board_snapshot),
    storage: BoardStorage = Depends(get_board_storage),
    settings: Settings = Depends(get_import_settings),
):
    """Run the batched import and report how many tasks were written."""
    _require_column(snapshot, request.default_column_id)

    try:
        result = await execute_bulk_import(
            storage,
            request.tasks,
            idea_id,
            request.actor_id,
            snapshot.columns,
            dict(request.column_mapping),
            request.default_column_id,
            snapshot.labels,
            snapshot.team_members,
            settings=settings,
        )
    except BoardImportError as e:
        logger.error(f"[Import] Bulk import for idea {idea_id} aborted: {e}")
        raise HTTPException(status_code=502, detail=str(e))

    return BulkImportResponse(
        created=result.created,
        errors=result.errors,
        submitted=min(len(request.tasks), settings.import_max_tasks),
    )


@router.post("/stream")
async def stream_board_import(
    idea_id: str,
    request: SequentialImportRequest,
    snapshot: BoardSnapshot = Depends(get_board_snapshot),
    storage: BoardStorage = Depends(get_board_storage),
    settings: Settings = Depends(get_import_settings),
):
    """
    Insert tasks one at a time, streaming one JSON event per line:
    setup, created, error, warning, then done (or failed).
    """
    _require_column(snapshot, request.default_column_id)

    events: asyncio.Queue = asyncio.Queue()
    token = CancellationToken()
    callbacks = SequentialCallbacks(
        on_setup_complete=lambda stats: events.put_nowait(
            {"event": "setup", "columns": stats.columns, "labels": stats.labels}
        ),
        on_task_created=lambda index, title: events.put_nowait(
            {"event": "created", "index": index, "title": title}
        ),
        on_task_error=lambda index, title, error: events.put_nowait(
            {"event": "error", "index": index, "title": title, "error": error}
        ),
        on_task_warning=lambda index, title, message: events.put_nowait(
            {"event": "warning", "index": index, "title": title, "message": message}
        ),
    )

    async def run_import():
        try:
            result = await insert_tasks_sequentially(
                storage,
                request.tasks,
                idea_id,
                request.actor_id,
                snapshot.columns,
                dict(request.column_mapping),
                request.default_column_id,
                snapshot.labels,
                snapshot.team_members,
                callbacks,
                signal=token,
                settings=settings,
            )
            events.put_nowait({"event": "done", **result.model_dump()})
        except BoardImportError as e:
            logger.error(f"[Import] Sequential import for idea {idea_id} aborted: {e}")
            events.put_nowait({"event": "failed", "error": str(e)})
        except Exception as e:
            logger.error(f"[Import] Sequential import for idea {idea_id} crashed: {e}")
            events.put_nowait({"event": "failed", "error": f"Import failed: {e}"})
        finally:
            events.put_nowait(None)

    async def event_stream():
        runner = asyncio.create_task(run_import())
        _running_imports.add(runner)
        runner.add_done_callback(_running_imports.discard)
        try:
            while True:
                event = await events.get()
                if event is None:
                    break
                yield json.dumps(event) + "\n"
        finally:
            # Client went away (or stream finished): stop before the next task
            token.cancel()

    return StreamingResponse(event_stream(), media_type="application/x-ndjson")
