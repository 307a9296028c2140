"""Board document API: the local HTTP store."""

import json
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request, WebSocket, WebSocketDisconnect
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import ValidationFailure
from ..models.database import get_db
from ..models.document import document_stats
from ..services.board import BoardService
from ..services.broadcast import get_broadcaster

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/board", tags=["board"])


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "timestamp": _timestamp()},
    )


@router.get("")
async def get_board(db: AsyncSession = Depends(get_db)):
    """Return the current board document."""
    board_service = BoardService(db)
    document = await board_service.get_document()
    logger.debug(f"GET board version {document.version}")
    return {"success": True, "data": document.to_wire(), "timestamp": _timestamp()}


@router.api_route("", methods=["POST", "PUT"])
async def replace_board(request: Request, db: AsyncSession = Depends(get_db)):
    """Replace the whole board document."""
    try:
        data = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return _error(400, "Body is not valid JSON")

    board_service = BoardService(db)
    try:
        document = await board_service.replace_document(data)
    except ValidationFailure as e:
        logger.warning(f"Rejected board write: {e.message}")
        return _error(400, "Invalid board data")

    await db.commit()
    wire = document.to_wire()
    await get_broadcaster().broadcast(wire)

    return {
        "success": True,
        "message": "Board updated",
        "data": wire,
        "timestamp": _timestamp(),
    }


async def method_not_allowed_handler(request: Request, exc: StarletteHTTPException):
    """Answer every unsupported method with the board error envelope."""
    if exc.status_code != 405:
        return await http_exception_handler(request, exc)
    logger.debug(f"{request.method} {request.url.path} not allowed")
    return _error(405, "Method not allowed")


@router.get("/stats")
async def get_board_stats(db: AsyncSession = Depends(get_db)):
    """Counters for the stored board."""
    board_service = BoardService(db)
    document = await board_service.get_document()
    return document_stats(document)


@router.websocket("/ws")
async def board_updates(websocket: WebSocket):
    """Push the board to a browser on connect and after every write."""
    async for db in get_db():
        document = await BoardService(db).get_document()
        await db.commit()
        break

    broadcaster = get_broadcaster()
    await broadcaster.connect(websocket, document.to_wire())
    try:
        while True:
            # Listeners only receive; anything they send is ignored
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        await broadcaster.disconnect(websocket)
