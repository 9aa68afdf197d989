from fastapi import FastAPI
import logging

from boop.api.routes import router
from boop.catalog.singleton import get_catalog, init_catalog
from boop.config import load_dotenv_if_present, log_level

load_dotenv_if_present()

app = FastAPI(title="boop-engine", version="0.1.0")
app.include_router(router)
# Configure logging
logging.basicConfig(level=log_level())
logger = logging.getLogger(__name__)


@app.on_event("startup")
async def _startup() -> None:
    init_catalog()


@app.get("/info")
async def info() -> dict[str, object]:
    catalog = get_catalog()
    return {
        "name": "boop-engine",
        "version": "0.1.0",
        "elixir_count": len(catalog),
        "catalog_source": catalog.source,
    }
