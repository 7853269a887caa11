"""WebSocket endpoint for realtime message updates."""

from typing import Any

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from chatly.api.dependencies import TENANT_HEADER, FanoutDep, PipelineDep, resolve_tenant
from chatly.core.exceptions import AppException

logger = structlog.get_logger()

router = APIRouter(tags=["Realtime"])

JOIN_EVENT = "join-tenant"
STATUS_EVENT = "message:update"


def _error(message: str, code: str = "INVALID_INPUT") -> dict[str, Any]:
    return {"event": "error", "data": {"error": code, "message": message}}


@router.websocket("/ws")
async def realtime_socket(
    websocket: WebSocket,
    fanout: FanoutDep,
    pipeline: PipelineDep,
) -> None:
    """Realtime channel.

    Client events:
    - {"event": "join-tenant", "tenantId": "..."}
    - {"event": "message:update", "messageId": "...", "status": "delivered"}

    Server events: "message:new", "message:update", "joined", "error".

    The connection belongs to the tenant in the handshake's X-Tenant-ID
    header; joining any other tenant is refused.
    """
    tenant_id = resolve_tenant(websocket.headers.get(TENANT_HEADER))
    if tenant_id is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await websocket.accept()

    async def reply(event: dict[str, Any]) -> None:
        # Once joined, everything goes through the connection's outbox
        if not fanout.notify(websocket, event):
            await websocket.send_json(event)

    try:
        while True:
            try:
                payload = await websocket.receive_json()
            except ValueError:
                await reply(_error("Expected a JSON object"))
                continue
            if not isinstance(payload, dict):
                await reply(_error("Expected a JSON object"))
                continue

            event = payload.get("event")

            if event == JOIN_EVENT:
                requested = payload.get("tenantId")
                if requested is not None and (
                    not isinstance(requested, str) or resolve_tenant(requested) != tenant_id
                ):
                    logger.warning("Refused cross-tenant join", tenant_id=tenant_id)
                    await reply(_error("Cannot join another tenant", "FORBIDDEN"))
                    continue
                fanout.join(websocket, tenant_id)
                await reply({"event": "joined", "data": {"tenantId": tenant_id}})

            elif event == STATUS_EVENT:
                if fanout.tenant_of(websocket) is None:
                    await reply(_error("Join a tenant first"))
                    continue
                try:
                    await pipeline.update_message_status(
                        tenant_id,
                        str(payload.get("messageId", "")),
                        str(payload.get("status", "")),
                    )
                except AppException as e:
                    await reply(_error(e.message, e.code))

            else:
                await reply(_error(f"Unknown event: {event}"))

    except WebSocketDisconnect:
        logger.debug("WebSocket disconnected")
    finally:
        fanout.leave(websocket)
