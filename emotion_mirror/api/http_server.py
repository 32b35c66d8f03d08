"""FastAPI HTTP + WebSocket surface for the emotion engine.

- Read-only diagnostics: status, personality, history, distribution, analytics
- Lifecycle: activate (with config overrides) / deactivate
- Ingest: pre-classified camera/speech results for the next tick
- /ws/emotions streams emitted updates in tick order
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from fastapi import Body, FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from emotion_mirror.api.schemas import (
    ActivateRequest,
    ClassifierSubmission,
    TextSubmission,
)
from emotion_mirror.config import ConfigurationError, EngineConfig

if TYPE_CHECKING:
    from emotion_mirror.core.analytics import EmotionAnalytics
    from emotion_mirror.core.engine import EmotionEngine

log = logging.getLogger(__name__)


def create_app(
    engine: EmotionEngine,
    base_config: EngineConfig | None = None,
    analytics: EmotionAnalytics | None = None,
) -> FastAPI:
    app = FastAPI(title="Emotion Mirror", version="1.0.0")
    base = base_config or EngineConfig()

    # -- Diagnostics -----------------------------------------------------------

    @app.get("/status")
    async def get_status():
        return JSONResponse(engine.status())

    @app.get("/personality")
    async def get_personality():
        return JSONResponse(engine.get_personality_profile().to_dict())

    @app.get("/history")
    async def get_history():
        return JSONResponse([e.to_dict() for e in engine.get_history_snapshot()])

    @app.get("/distribution")
    async def get_distribution():
        dist = engine.last_distribution()
        if dist is None:
            return JSONResponse({"distribution": None})
        return JSONResponse(
            {"distribution": {c.value: round(v, 6) for c, v in dist.items()}}
        )

    @app.get("/analytics")
    async def get_analytics():
        if analytics is None:
            return JSONResponse({"error": "analytics not enabled"}, status_code=404)
        return JSONResponse(analytics.summary())

    # -- Lifecycle -------------------------------------------------------------

    @app.post("/activate")
    async def post_activate(req: ActivateRequest | None = Body(default=None)):
        if engine.is_active:
            return JSONResponse(
                {"ok": False, "active": True, "error": "engine already active"},
                status_code=409,
            )
        overrides = req.config if req else {}
        try:
            cfg = base.with_overrides(overrides)
            await engine.activate(cfg)
        except ConfigurationError as e:
            log.warning("activate refused: %s", e)
            return JSONResponse(
                {"ok": False, "field": e.field, "reason": e.reason}, status_code=422
            )
        return JSONResponse({"ok": True, "active": engine.is_active})

    @app.post("/deactivate")
    async def post_deactivate():
        await engine.deactivate()
        return JSONResponse({"ok": True, "active": engine.is_active})

    # -- Ingest ----------------------------------------------------------------

    @app.post("/classifier")
    async def post_classifier(req: ClassifierSubmission):
        engine.submit_classifier_result(req.label, req.score)
        return JSONResponse({"ok": True})

    @app.post("/text")
    async def post_text(req: TextSubmission):
        engine.submit_text_signal(req.text, req.label, req.score)
        return JSONResponse({"ok": True})

    # -- WebSocket emotion stream ----------------------------------------------

    @app.websocket("/ws/emotions")
    async def websocket_emotions(ws: WebSocket):
        # Subscribe before accepting so no update between handshake and loop is lost.
        q = engine.subscribe()
        closed: asyncio.Task | None = None
        try:
            await ws.accept()
            closed = asyncio.create_task(_wait_for_disconnect(ws))
            while True:
                getter = asyncio.ensure_future(q.get())
                done, _ = await asyncio.wait(
                    {getter, closed}, return_when=asyncio.FIRST_COMPLETED
                )
                if getter not in done:  # client went away
                    getter.cancel()
                    return
                update = getter.result()
                if update is None:  # engine deactivated
                    await ws.close()
                    return
                await ws.send_json(update.to_dict())
        except WebSocketDisconnect:
            pass
        finally:
            if closed is not None:
                closed.cancel()
            engine.unsubscribe(q)

    return app


async def _wait_for_disconnect(ws: WebSocket) -> None:
    """Drain client frames; return once the client disconnects."""
    while True:
        message = await ws.receive()
        if message["type"] == "websocket.disconnect":
            return
