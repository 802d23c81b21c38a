# rms_desktop/api/runtime.py
"""
RMS Desktop – launch status API
===============================

The status page gets live updates pushed through pywebview, but after a
reload (or when opened in a plain browser) it rebuilds its state here.

Routes
------
GET /api/runtime
    -> local/LAN URL and database path, or nulls before they are known.

GET /api/logs?since=N
    -> log lines with index >= N plus the index to ask for next time.
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, Request, status
from pydantic import BaseModel

from rms_desktop.core.sink import StatusBoard

router = APIRouter(tags=["runtime"])


class RuntimeResponse(BaseModel):
    localUrl: Optional[str] = None
    lanUrl: Optional[str] = None
    dbPath: Optional[str] = None


class LogsResponse(BaseModel):
    next: int
    lines: List[str]


def _board(request: Request) -> StatusBoard:
    board = getattr(request.app.state, "board", None)
    if board is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Launcher not initialised",
        )
    return board


@router.get("/runtime", response_model=RuntimeResponse)
async def get_runtime(request: Request):
    info = _board(request).runtime
    if info is None:
        return RuntimeResponse()
    return RuntimeResponse(localUrl=info.local_url, lanUrl=info.lan_url, dbPath=info.db_path)


@router.get("/logs", response_model=LogsResponse)
async def get_logs(request: Request, since: int = Query(0, ge=0)):
    nxt, lines = _board(request).lines_since(since)
    return LogsResponse(next=nxt, lines=lines)
