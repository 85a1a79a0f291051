import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from .agent.knowledge import create_knowledge_client
from .agent.provider import create_provider
from .api.routes import router
from .config import LOG_LEVEL, PORT, ROOT_PATH, SQLITE_PATH, STATIC_DIR
from .data.sqlite_store import SQLiteStore

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    SQLITE_PATH.parent.mkdir(parents=True, exist_ok=True)

    logger.info("Initializing SQLite store at %s...", SQLITE_PATH)
    sqlite_store = SQLiteStore(str(SQLITE_PATH))
    await sqlite_store.initialize()

    logger.info("Initializing model and knowledge clients...")
    provider = create_provider()
    knowledge_client = create_knowledge_client()

    app.state.sqlite_store = sqlite_store
    app.state.provider = provider
    app.state.knowledge_client = knowledge_client

    logger.info("Startup complete, ready to serve")
    yield

    # Shutdown
    logger.info("Shutting down...")
    if knowledge_client is not None:
        await knowledge_client.close()
    if provider is not None:
        await provider.close()
    await sqlite_store.close()


app = FastAPI(title="Experiment Demo Agent", root_path=ROOT_PATH, lifespan=lifespan)
app.include_router(router)
if STATIC_DIR.is_dir():
    app.mount("/", StaticFiles(directory=str(STATIC_DIR), html=True), name="static")
else:
    logger.debug("No static directory at %s; serving the API only", STATIC_DIR)


def run() -> None:
    uvicorn.run("demo_agent.main:app", host="0.0.0.0", port=PORT)
