"""
ClipGuard Service
=================

FastAPI entry point exposing fingerprinting and blocklist operations.

Endpoints:
    GET    /health                - Liveness probe
    GET    /stats                 - Blocker, queue, and registry statistics
    GET    /blocklist             - All block records
    POST   /blocklist             - Add a fingerprint directly
    DELETE /blocklist/{bits}      - Remove a fingerprint
    DELETE /blocklist             - Clear the blocklist
    POST   /fingerprint           - Fingerprint a local video file
    POST   /block                 - Fingerprint a file and block it
    POST   /check                 - Fingerprint a file and match it
    PUT    /settings/threshold    - Update the Hamming threshold

Components are created in the lifespan handler and kept on app.state.
"""

import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from clipguard import __version__
from clipguard.blocker import VideoBlocker
from clipguard.config import Settings, load_config, setup_logging
from clipguard.errors import InvalidFingerprintError
from clipguard.models.fingerprint import Fingerprint
from clipguard.models.record import BlockOrigin
from clipguard.sampling.source import VideoFileFrameSource


logger = logging.getLogger(__name__)


# =============================================================================
# Request Models
# =============================================================================

class FingerprintBody(BaseModel):
    """Direct blocklist addition."""
    
    fingerprint: str = Field(..., min_length=1, description="Fingerprint bit string")
    origin: BlockOrigin = Field(default=BlockOrigin.MANUAL)


class VideoBody(BaseModel):
    """Reference to a local video file."""
    
    path: str = Field(..., min_length=1, description="Path to a local video file")
    frames: Optional[int] = Field(default=None, ge=1, le=30, description="Frames to average")


class ThresholdBody(BaseModel):
    """Sensitivity update."""
    
    threshold: int = Field(..., ge=0, le=64, description="Maximum Hamming distance")


# =============================================================================
# Application Factory
# =============================================================================

def create_app(settings: Optional[Settings] = None, blocker: Optional[VideoBlocker] = None) -> FastAPI:
    """
    Build the FastAPI application.
    
    Args:
        settings: Loaded settings; load_config() when omitted
        blocker: Preconstructed blocker (tests); built from settings otherwise
    """
    settings = settings or load_config()
    
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.settings = settings
        app.state.blocker = blocker or VideoBlocker.from_settings(settings)
        app.state.startup_time = time.time()
        
        await app.state.blocker.start()
        logger.info(f"ClipGuard {__version__} started")
        try:
            yield
        finally:
            await app.state.blocker.shutdown()
            logger.info("ClipGuard stopped")
    
    app = FastAPI(
        title="ClipGuard",
        version=__version__,
        lifespan=lifespan,
    )
    _register_routes(app)
    return app


def _blocker(request: Request) -> VideoBlocker:
    return request.app.state.blocker


async def _open_source(path: str) -> VideoFileFrameSource:
    if not Path(path).is_file():
        raise HTTPException(status_code=404, detail=f"Video not found: {path}")
    return await VideoFileFrameSource.open(path)


async def _close_source(source: VideoFileFrameSource) -> None:
    # close() takes the source lock, which an abandoned read may hold
    await asyncio.to_thread(source.close)


def _register_routes(app: FastAPI) -> None:
    
    @app.get("/health")
    async def health(request: Request) -> JSONResponse:
        """Liveness probe."""
        return JSONResponse({
            "status": "ok",
            "version": __version__,
            "uptime_seconds": round(time.time() - request.app.state.startup_time, 1),
        })
    
    @app.get("/stats")
    async def stats(request: Request) -> JSONResponse:
        return JSONResponse(_blocker(request).stats())
    
    @app.get("/blocklist")
    async def list_blocklist(request: Request) -> JSONResponse:
        records = _blocker(request).registry.records()
        return JSONResponse({
            "count": len(records),
            "records": [r.model_dump(mode="json") for r in records],
        })
    
    @app.post("/blocklist")
    async def add_blocklist(body: FingerprintBody, request: Request) -> JSONResponse:
        try:
            added = await _blocker(request).add_fingerprint(body.fingerprint, origin=body.origin)
        except InvalidFingerprintError as e:
            raise HTTPException(status_code=422, detail=str(e))
        
        return JSONResponse({"added": added}, status_code=201 if added else 200)
    
    @app.delete("/blocklist/{bits}")
    async def remove_blocklist(bits: str, request: Request) -> JSONResponse:
        try:
            fingerprint = Fingerprint.parse(bits)
        except InvalidFingerprintError as e:
            raise HTTPException(status_code=422, detail=str(e))
        
        removed = await _blocker(request).remove_fingerprint(fingerprint)
        if not removed:
            raise HTTPException(status_code=404, detail="Fingerprint not found")
        return JSONResponse({"removed": True})
    
    @app.delete("/blocklist")
    async def clear_blocklist(request: Request) -> JSONResponse:
        await _blocker(request).clear_all()
        return JSONResponse({"cleared": True})
    
    @app.post("/fingerprint")
    async def fingerprint(body: VideoBody, request: Request) -> JSONResponse:
        source = await _open_source(body.path)
        try:
            result = await _blocker(request).compute_fingerprint(source, frame_count=body.frames)
        finally:
            await _close_source(source)
        return JSONResponse(result.to_dict())
    
    @app.post("/block")
    async def block(body: VideoBody, request: Request) -> JSONResponse:
        source = await _open_source(body.path)
        try:
            decision = await _blocker(request).block(source)
        finally:
            await _close_source(source)
        return JSONResponse(decision.to_dict())
    
    @app.post("/check")
    async def check(body: VideoBody, request: Request) -> JSONResponse:
        source = await _open_source(body.path)
        try:
            decision = await _blocker(request).check(source)
        finally:
            await _close_source(source)
        return JSONResponse(decision.to_dict())
    
    @app.put("/settings/threshold")
    async def set_threshold(body: ThresholdBody, request: Request) -> JSONResponse:
        _blocker(request).set_threshold(body.threshold)
        return JSONResponse({"hamming_threshold": body.threshold})


# =============================================================================
# Main Entry Point
# =============================================================================

def run() -> None:
    """Run the service with uvicorn."""
    import uvicorn
    
    settings = load_config()
    setup_logging(settings)
    
    port = int(os.environ.get("PORT", settings.server.port))
    uvicorn.run(
        create_app(settings),
        host=settings.server.host,
        port=port,
        reload=False,
    )


if __name__ == "__main__":
    run()
