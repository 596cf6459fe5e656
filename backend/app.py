import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from backend.routes import router
from backend import storage
from lorelens.engine import AttributionEngine

load_dotenv(Path(__file__).parent.parent / ".env")

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"


def create_app(data_dir: Path | None = None) -> FastAPI:
    resolved = data_dir or Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))
    storage.init_storage(resolved)

    settings = storage.get_settings()
    if settings.debug:
        logging.getLogger("lorelens").setLevel(logging.INFO)

    app = FastAPI(title="LoreLens")
    app.state.engine = AttributionEngine(settings)
    app.state.last_batch = None
    app.include_router(router, prefix="/api")
    return app


# Default app instance for uvicorn (uses DATA_DIR env var or default)
app = create_app()
