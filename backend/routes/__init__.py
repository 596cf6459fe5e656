"""FastAPI API endpoints under /api.

Endpoint groups: settings (+ health), events (generation start, force
activation, entries activated, categories), reports (last batch + digest).
The engine session and the last batch live on app.state.
"""

from fastapi import APIRouter

from .events import router as events_router
from .reports import router as reports_router
from .settings import router as settings_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(events_router)
router.include_router(reports_router)
