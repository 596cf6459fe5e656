"""Health check and settings endpoints."""

from fastapi import APIRouter, HTTPException, Request

from backend import storage

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/settings")
async def get_settings():
    """Get engine settings (scan depths, collections, debug, digest template)."""
    return storage.get_config()


@router.patch("/settings")
async def update_settings(body: dict, request: Request):
    """Update engine settings (partial merge) and apply them to the live engine."""
    try:
        config = storage.update_config(body)
    except storage.SettingsError as e:
        raise HTTPException(400, str(e))
    request.app.state.engine.settings = storage.get_settings()
    return config
