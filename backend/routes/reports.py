"""Last cycle's attribution reports and the rendered digest."""

from fastapi import APIRouter, HTTPException, Request

from backend.digest import DigestError, render_digest

router = APIRouter()


def _last_batch(request: Request):
    batch = request.app.state.last_batch
    if batch is None:
        raise HTTPException(404, "No entries have been attributed yet")
    return batch


@router.get("/reports")
async def get_reports(request: Request):
    """Get the reports of the most recent entries-activated event."""
    return _last_batch(request)


@router.get("/reports/digest")
async def get_digest(request: Request):
    """Render the most recent reports as a grouped text digest."""
    batch = _last_batch(request)
    template = request.app.state.engine.settings.digest_template
    try:
        return {"text": render_digest(batch, template or None)}
    except DigestError as e:
        raise HTTPException(400, str(e))
