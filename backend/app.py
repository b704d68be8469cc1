import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from backend import storage
from backend.routes import router
from backend.session import GameHost

load_dotenv(Path(__file__).parent.parent / ".env")

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"


def create_app(data_dir: Path | None = None, host: GameHost | None = None) -> FastAPI:
    resolved = data_dir or Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))
    storage.init_storage(resolved)

    level = os.getenv("LOG_LEVEL", "")
    if level:
        logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
        logging.getLogger("demon_lord").setLevel(level.upper())
        logging.getLogger("backend").setLevel(level.upper())

    game = host or GameHost()
    game.configure(storage.get_config())

    app = FastAPI(title="Demon Lord in 30 Days")
    app.state.game = game
    app.include_router(router, prefix="/api")
    return app


# Default app instance for uvicorn (uses DATA_DIR env var or default)
app = create_app()
