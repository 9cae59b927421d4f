"""
imageslot FastAPI Main Application
API endpoints for previewing, uploading and reconciling the image slot.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .config import settings
from .errors import (
    AuthError,
    ConfigError,
    DecodeError,
    ImageSlotError,
    NoPreviewError,
    RecordNotFoundError,
    SizeLimitError,
    TransportError,
    UnsupportedInputError,
    UploadInProgressError,
)
from .estimator import format_file_size
from .models import parse_policy
from .session import ImageSlotSession, describe_preview, describe_version

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

_session: Optional[ImageSlotSession] = None


def get_session() -> ImageSlotSession:
    """Return the process-wide session, creating it on first use."""
    global _session
    if _session is None:
        _session = ImageSlotSession(settings)
    return _session


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load the current image on startup; cancel pending re-reads on shutdown."""
    global _session
    settings.ensure_directories()
    session = get_session()
    try:
        await session.refresh()
    except ImageSlotError as e:
        logger.warning(f"Current image not loaded: {e}")

    yield

    if _session is not None:
        await _session.aclose()
        _session = None


# Create FastAPI app
app = FastAPI(
    title="imageslot",
    description="Single image slot manager for a GitHub Pages repository",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Auth Middleware ---

@app.middleware("http")
async def verify_token(request: Request, call_next):
    """Verify API token for everything except health and docs."""
    if request.method == "OPTIONS":
        return await call_next(request)

    public_paths = ["/", "/docs", "/openapi.json", "/health"]
    if request.url.path in public_paths:
        return await call_next(request)

    token = request.query_params.get("token") or request.headers.get("Authorization", "").replace("Bearer ", "")
    if token != settings.api_token:
        return JSONResponse(status_code=401, content={"error": "Invalid or missing API token"})

    return await call_next(request)


def _http_error(e: ImageSlotError) -> HTTPException:
    """Map a pipeline error to an HTTP error with a user-facing message."""
    if isinstance(e, SizeLimitError):
        status = 413
    elif isinstance(e, UnsupportedInputError):
        status = 415
    elif isinstance(e, DecodeError):
        status = 422
    elif isinstance(e, AuthError):
        status = 403
    elif isinstance(e, ConfigError):
        status = 400
    elif isinstance(e, TransportError):
        status = 502
    elif isinstance(e, UploadInProgressError):
        status = 409
    elif isinstance(e, (NoPreviewError, RecordNotFoundError)):
        status = 404
    else:
        status = 500
    return HTTPException(status_code=status, detail=str(e))


def _mask(token: str) -> str:
    if not token:
        return ""
    if len(token) <= 8:
        return "****"
    return f"{token[:4]}...{token[-4:]}"


# --- Health & Config ---

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "0.1.0"}


@app.get("/api/config")
async def get_config():
    """Current remote store configuration (token masked)."""
    session = get_session()
    return {
        "repo_path": settings.repo_path,
        "github_token": _mask(settings.github_token),
        "configured": bool(settings.github_token and settings.repo_path),
        "filename": settings.resource_filename,
        "branch": settings.branch,
        "public_url": session.public_url(),
        "max_upload_bytes": settings.max_upload_bytes,
        "max_upload_display": format_file_size(settings.max_upload_bytes),
    }


@app.get("/api/state")
async def get_state():
    """Session state: policy, preview, pending upload and current version."""
    return get_session().snapshot()


# --- Preview ---

@app.put("/api/policy")
async def update_policy(request: Request):
    """
    Change the compression policy.

    Body is one of ``{"mode": "none"}``, ``{"mode": "preset", "tier": "high"}``
    or ``{"mode": "manual", "factor": 0.8}``. A pending preview is
    recomputed with the new policy.
    """
    try:
        policy = parse_policy(await request.json())
    except (ValueError, ValidationError) as e:
        raise HTTPException(status_code=422, detail=str(e))

    session = get_session()
    try:
        preview = session.set_policy(policy)
    except ImageSlotError as e:
        raise _http_error(e)

    return {
        "policy": policy.model_dump(mode="json"),
        "preview": describe_preview(preview) if preview else None,
    }


@app.post("/api/preview")
async def create_preview(file: UploadFile = File(..., description="Image to upload")):
    """Resize and recompress a candidate image; replaces any pending preview."""
    data = await file.read()
    try:
        result = get_session().load_candidate(data, file.content_type)
    except ImageSlotError as e:
        logger.info(f"Rejected candidate {file.filename}: {e}")
        raise _http_error(e)
    return describe_preview(result)


@app.delete("/api/preview")
async def cancel_preview():
    get_session().cancel_preview()
    return {"status": "cancelled"}


# --- Upload & Reconciliation ---

@app.post("/api/upload")
async def confirm_upload():
    """Upload the pending preview to the repository."""
    try:
        receipt = await get_session().confirm_upload()
    except ImageSlotError as e:
        raise _http_error(e)
    return {
        "status": "uploaded",
        "sha": receipt.sha,
        "previous_sha": receipt.previous_sha,
        "size": receipt.size,
        "message": receipt.message,
    }


@app.post("/api/refresh")
async def refresh_current():
    """Re-read the current image now, clearing any pending placeholder."""
    try:
        version = await get_session().refresh()
    except ImageSlotError as e:
        raise _http_error(e)
    return {"current": describe_version(version) if version else None}


# --- Recent Uploads ---

@app.get("/api/recent")
async def list_recent():
    return {"images": [r.model_dump(mode="json") for r in get_session().recent.list()]}


@app.delete("/api/recent")
async def clear_recent():
    get_session().recent.clear()
    return {"images": []}


@app.post("/api/recent/{record_id}/reuse")
async def reuse_recent(record_id: str):
    """Upload a recent image again without recompressing it."""
    try:
        receipt = await get_session().reuse(record_id)
    except ImageSlotError as e:
        raise _http_error(e)
    return {"status": "uploaded", "sha": receipt.sha, "size": receipt.size}

