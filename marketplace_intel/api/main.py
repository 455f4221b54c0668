"""FastAPI application for the marketplace intelligence engine."""

from datetime import datetime
from functools import lru_cache
from typing import List, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from .. import __version__
from ..orchestrator.coordinator import JobCoordinator
from ..utils.config import get_config

# Initialize FastAPI app
app = FastAPI(
    title="Marketplace Intelligence API",
    description="Batch scoring of product rankings, inventory health and seller financing",
    version=__version__,
)

# Load configuration
config = get_config()

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.api.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache()
def get_coordinator() -> JobCoordinator:
    """Process-wide job coordinator, replaced through dependency_overrides in tests."""
    return JobCoordinator(get_config().model_dump())


async def _read_body(request: Request) -> dict:
    """Parse a JSON object body; anything else counts as empty."""
    try:
        body = await request.json()
    except Exception:
        logger.debug("Request body is not valid JSON, using defaults")
        return {}
    return body if isinstance(body, dict) else {}


def _product_ids(body: dict) -> Optional[List[str]]:
    product_ids = body.get("product_ids")
    if not isinstance(product_ids, list):
        return None
    product_ids = list(dict.fromkeys(str(product_id) for product_id in product_ids if product_id))
    return product_ids or None


def _error_response() -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Marketplace Intelligence API",
        "version": __version__,
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
    }


@app.post("/calculate-rankings")
async def calculate_rankings(request: Request, coordinator: JobCoordinator = Depends(get_coordinator)):
    """Recompute product rankings.

    Body:
        product_ids: Optional list of product ids to restrict the run to

    Returns:
        Ranked products and notifications sent
    """
    body = await _read_body(request)
    try:
        return await coordinator.run_rankings(product_ids=_product_ids(body))
    except Exception as e:
        logger.exception(f"Ranking run failed: {e}")
        return _error_response()


@app.post("/calculate-inventory")
async def calculate_inventory(request: Request, coordinator: JobCoordinator = Depends(get_coordinator)):
    """Recompute inventory forecasts and run stock automations.

    Body:
        product_ids: Optional list of product ids to restrict the run to

    Returns:
        Forecast rows written, listings auto-hidden and ranking penalties requested
    """
    body = await _read_body(request)
    try:
        return await coordinator.run_inventory(product_ids=_product_ids(body))
    except Exception as e:
        logger.exception(f"Inventory run failed: {e}")
        return _error_response()


@app.post("/calculate-financing")
async def calculate_financing(request: Request, coordinator: JobCoordinator = Depends(get_coordinator)):
    """Rescore sellers for financing.

    Body:
        store_id: Optional single store to score

    Returns:
        Stores scored and offers generated
    """
    body = await _read_body(request)
    store_id = body.get("store_id")
    try:
        return await coordinator.run_financing(store_id=str(store_id) if store_id else None)
    except Exception as e:
        logger.exception(f"Financing run failed: {e}")
        return _error_response()
