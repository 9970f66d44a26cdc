"""FastAPI endpoints for token issuance, check-in and live admission sync."""

from __future__ import annotations

from fastapi import Depends, FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from .config import load_settings
from .errors import InvalidIdentifier
from .models import AdmissionResult
from .registry import CheckInRegistry, open_registry


class IssueTokenRequest(BaseModel):
    identifier: str = Field(max_length=500)


class IssueTokenResponse(BaseModel):
    identifier: str
    token: str


class BatchTokenRequest(BaseModel):
    identifiers: list[str] = Field(max_length=10000)


class BatchTokenResponse(BaseModel):
    codes: list[IssueTokenResponse]


class VerifyRequest(BaseModel):
    code: str = Field(max_length=500)


class ManualCheckInRequest(BaseModel):
    identifier: str = Field(max_length=500)


class AdmissionResponse(BaseModel):
    admitted: bool
    outcome: str
    identifier: str | None
    message: str


class AdmittedListResponse(BaseModel):
    admitted: list[str]
    count: int


class ResetResponse(BaseModel):
    success: bool
    message: str


def _admission_response(result: AdmissionResult) -> AdmissionResponse:
    return AdmissionResponse(
        admitted=result.admitted,
        outcome=result.outcome.value,
        identifier=result.identifier,
        message=result.message,
    )


class CheckInWebSocketHub:
    def __init__(self) -> None:
        self._connections: set[WebSocket] = set()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._connections.add(websocket)

    def disconnect(self, websocket: WebSocket) -> None:
        self._connections.discard(websocket)

    async def send_admitted(self, websocket: WebSocket, admitted: list[str]) -> None:
        await websocket.send_json({"type": "checkins.full", "admitted": admitted})

    async def broadcast_admitted(self, admitted: list[str]) -> None:
        stale_connections: list[WebSocket] = []
        for websocket in list(self._connections):
            try:
                await self.send_admitted(websocket, admitted)
            except RuntimeError:
                stale_connections.append(websocket)
        for websocket in stale_connections:
            self.disconnect(websocket=websocket)


def _default_registry() -> CheckInRegistry:
    return open_registry(load_settings())


def create_app(registry: CheckInRegistry | None = None) -> FastAPI:
    app = FastAPI(title="Check-In Registry API", version="0.1.0")
    checkin_registry = registry if registry is not None else _default_registry()
    websocket_hub = CheckInWebSocketHub()
    app.state.registry = checkin_registry
    app.state.websocket_hub = websocket_hub

    async def publish_admitted() -> None:
        admitted = await run_in_threadpool(checkin_registry.list_admitted)
        await websocket_hub.broadcast_admitted(admitted)

    def get_registry() -> CheckInRegistry:
        return checkin_registry

    @app.post("/api/tokens", response_model=IssueTokenResponse)
    def issue_token(
        payload: IssueTokenRequest,
        local_registry: CheckInRegistry = Depends(get_registry),
    ) -> IssueTokenResponse:
        try:
            issued = local_registry.issue_token(payload.identifier)
        except InvalidIdentifier as exc:
            raise HTTPException(status_code=400, detail=exc.reason) from exc
        return IssueTokenResponse(identifier=issued.identifier, token=issued.token)

    @app.post("/api/tokens/batch", response_model=BatchTokenResponse)
    def issue_tokens(
        payload: BatchTokenRequest,
        local_registry: CheckInRegistry = Depends(get_registry),
    ) -> BatchTokenResponse:
        try:
            issued = local_registry.pre_generated_codes(payload.identifiers)
        except InvalidIdentifier as exc:
            raise HTTPException(status_code=400, detail=exc.reason) from exc
        return BatchTokenResponse(
            codes=[IssueTokenResponse(identifier=item.identifier, token=item.token) for item in issued]
        )

    @app.post("/api/checkins/verify", response_model=AdmissionResponse)
    async def verify_code(
        payload: VerifyRequest,
        local_registry: CheckInRegistry = Depends(get_registry),
    ) -> AdmissionResponse:
        result = await run_in_threadpool(local_registry.verify_and_admit, payload.code)
        if result.admitted:
            await publish_admitted()
        return _admission_response(result)

    @app.post("/api/checkins/manual", response_model=AdmissionResponse)
    async def manual_check_in(
        payload: ManualCheckInRequest,
        local_registry: CheckInRegistry = Depends(get_registry),
    ) -> AdmissionResponse:
        try:
            result = await run_in_threadpool(local_registry.admit_by_id, payload.identifier)
        except InvalidIdentifier as exc:
            raise HTTPException(status_code=400, detail=exc.reason) from exc
        if result.admitted:
            await publish_admitted()
        return _admission_response(result)

    @app.get("/api/checkins", response_model=AdmittedListResponse)
    def list_checkins(local_registry: CheckInRegistry = Depends(get_registry)) -> AdmittedListResponse:
        admitted = local_registry.list_admitted()
        return AdmittedListResponse(admitted=admitted, count=len(admitted))

    @app.post("/api/reset", response_model=ResetResponse)
    async def reset(local_registry: CheckInRegistry = Depends(get_registry)) -> ResetResponse:
        result = await run_in_threadpool(local_registry.reset)
        await publish_admitted()
        return ResetResponse(success=result.success, message=result.message)

    @app.websocket("/ws/checkins")
    async def checkins_ws(
        websocket: WebSocket,
        local_registry: CheckInRegistry = Depends(get_registry),
    ) -> None:
        await websocket_hub.connect(websocket=websocket)
        admitted = await run_in_threadpool(local_registry.list_admitted)
        await websocket_hub.send_admitted(websocket=websocket, admitted=admitted)

        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            websocket_hub.disconnect(websocket=websocket)

    return app

