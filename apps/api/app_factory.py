# apps/api/app_factory.py
from __future__ import annotations

from dataclasses import asdict
from typing import Any, Callable, Optional

import numpy as np
from fastapi import Body, FastAPI, File, UploadFile
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.concurrency import run_in_threadpool

from services.capture.intake import accept_upload
from services.verification.errors import (
    AuthenticityRejected,
    CaptureError,
    EngineError,
    FieldMismatch,
    InvalidTransition,
    SessionNotFound,
    SinkError,
    UserInputError,
    VerificationError,
)
from services.verification.models import CaptureSource
from services.verification.state_machine import VerificationService


HTTP_STATUS = {
    CaptureError: 400,
    UserInputError: 400,
    SessionNotFound: 404,
    InvalidTransition: 409,
    AuthenticityRejected: 422,
    FieldMismatch: 422,
    SinkError: 502,
    EngineError: 503,
}


def _status_for(err: VerificationError) -> int:
    for cls, code in HTTP_STATUS.items():
        if isinstance(err, cls):
            return code
    return 500


def create_app(
    *,
    service: VerificationService,
    intake_fn: Optional[Callable[[bytes], np.ndarray]] = accept_upload,
) -> FastAPI:
    """
    HTTP surface over VerificationService. `intake_fn` decodes and
    quality-checks uploads before a session is opened (None disables it).
    """
    app = FastAPI(title="CNIC Verification API")

    @app.exception_handler(VerificationError)
    async def verification_error_handler(_request, exc: VerificationError):
        body: dict[str, Any] = {**exc.to_dict(), "session_id": exc.session_id}
        if exc.session_id is not None:
            try:
                body["state"] = service.get_session_state(exc.session_id)
            except SessionNotFound:
                pass
        return JSONResponse(status_code=_status_for(exc), content=body)

    @app.get("/")
    async def root():
        return RedirectResponse(url="/docs")

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    @app.post("/sessions", status_code=201)
    async def create_session(file: UploadFile = File(...)):
        contents = await file.read()
        if intake_fn is not None:
            await run_in_threadpool(intake_fn, contents)
        session_id = await service.start_session(contents, source=CaptureSource.UPLOAD)
        return {"session_id": session_id, "state": service.get_session_state(session_id)}

    @app.post("/sessions/{session_id}/image")
    async def retry_image(session_id: str, file: UploadFile = File(...)):
        contents = await file.read()
        if intake_fn is not None:
            await run_in_threadpool(intake_fn, contents)
        return await service.process_image(session_id, contents)

    @app.get("/sessions/{session_id}")
    async def session_state(session_id: str):
        return service.get_session_state(session_id)

    @app.put("/sessions/{session_id}/fields/{field}")
    async def set_field(session_id: str, field: str, value: Optional[str] = Body(None, embed=True)):
        service.set_user_field(session_id, field, value)
        return service.get_session_state(session_id)

    @app.post("/sessions/{session_id}/validate")
    async def validate(session_id: str):
        match = service.confirm_and_validate(session_id)
        return {"session_id": session_id, "decision": asdict(match)}

    @app.post("/sessions/{session_id}/submit")
    async def submit(session_id: str):
        record = await service.submit(session_id)
        return {"session_id": session_id, "record": record.to_dict()}

    @app.post("/sessions/{session_id}/reset")
    async def reset(session_id: str):
        service.reset(session_id)
        return service.get_session_state(session_id)

    @app.delete("/sessions/{session_id}")
    async def close(session_id: str):
        service.close_session(session_id)
        return {"session_id": session_id, "closed": True}

    return app
