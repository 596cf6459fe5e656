"""Generation lifecycle endpoints: the engine's two events plus force activation."""

from fastapi import APIRouter, Request

from .models import EntriesActivatedBody, EntriesBody, GenerationStartBody

router = APIRouter()


@router.post("/generation/start")
async def generation_start(body: GenerationStartBody, request: Request):
    """Start a generation cycle (resets activation tracking)."""
    engine = request.app.state.engine
    cycle_id = engine.on_generation_start(body.generation_type, body.cycle_id)
    return {"cycle_id": cycle_id}


@router.post("/entries/force-activated")
async def entries_force_activated(body: EntriesBody, request: Request):
    """Record entries force-activated by the retrieval subsystem."""
    tracked = request.app.state.engine.on_entries_force_activated(body.entries)
    return {"tracked": tracked}


@router.post("/entries/activated")
async def entries_activated(body: EntriesActivatedBody, request: Request):
    """Attribute activated entries; the batch is kept as the last result."""
    batch = request.app.state.engine.on_entries_activated(
        body.entries, body.messages,
        chat_id=body.chat_id, character_id=body.character_id,
    )
    request.app.state.last_batch = batch
    return batch


@router.post("/categories")
async def classify_entries(body: EntriesBody, request: Request):
    """Display category per entry; malformed entries are reported as General."""
    return request.app.state.engine.categorize(body.entries)
