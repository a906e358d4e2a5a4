"""
Website <-> service handshakes over the request channel:

  POST /api/handshake/reply      website answers a pending request
  GET  /api/handshake/pending    website polls for requests to answer
  POST /api/handshake/{kind}     caller waits (bounded) for the website's answer
"""
import logging

from fastapi import APIRouter, Depends, HTTPException

from solvesync.schemas.response import (
    HandshakeReply,
    HandshakeRequest,
    HandshakeResponse,
    PendingHandshake,
)
from solvesync.services.runtime import SyncRuntime, get_runtime

logger = logging.getLogger(__name__)

router = APIRouter(tags=["handshake"])


@router.post("/api/handshake/reply")
async def reply(body: HandshakeReply, runtime: SyncRuntime = Depends(get_runtime)) -> dict:
    if not runtime.channel.resolve(body.correlation_id, body.data):
        raise HTTPException(status_code=404, detail="Unknown or expired correlation id.")
    return {"ok": True}


@router.get("/api/handshake/pending", response_model=list[PendingHandshake])
async def pending(
    kind: str | None = None, runtime: SyncRuntime = Depends(get_runtime)
) -> list[PendingHandshake]:
    return [
        PendingHandshake(correlation_id=r.correlation_id, kind=r.kind, payload=r.payload)
        for r in runtime.channel.pending(kind)
    ]


@router.post("/api/handshake/{kind}", response_model=HandshakeResponse)
async def wait_for_reply(
    kind: str, body: HandshakeRequest, runtime: SyncRuntime = Depends(get_runtime)
) -> HandshakeResponse:
    """Wait for the website to answer; resolves to ``ok=false`` on timeout."""
    response = await runtime.channel.request(kind, body.payload, body.timeout)
    return HandshakeResponse(
        ok=response.ok,
        correlation_id=response.correlation_id,
        data=response.data,
        error=response.error,
    )
