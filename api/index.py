"""
Artisanal Beer Storefront - Main FastAPI Application

Checkout entry point for the storefront's client-side cart.
"""
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from storefront.checkout import CheckoutService, get_checkout_service, shutdown_checkout_service
from storefront.errors import (
    ERROR_CHECKOUT_EMPTY,
    ERROR_CHECKOUT_NOT_CONFIGURED,
    CheckoutError,
    CheckoutNotConfiguredError,
)
from storefront.logging import get_logger

from api.models import CheckoutRequest, CheckoutResponse

logger = get_logger(__name__)


# ==================== FASTAPI APP ====================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    yield
    await shutdown_checkout_service()


app = FastAPI(
    title="Cerveza Artesana Storefront",
    description="Storefront cart checkout API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==================== HEALTH CHECK ====================

@app.get("/api/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "ok", "service": "storefront"}


# ==================== CHECKOUT ====================

@app.post("/api/checkout.json", response_model=CheckoutResponse)
async def create_checkout(
    request: CheckoutRequest,
    checkout: CheckoutService = Depends(get_checkout_service),
):
    """Create a Mercado Pago preference for the posted cart snapshot."""
    if not request.items:
        raise HTTPException(status_code=400, detail=ERROR_CHECKOUT_EMPTY)

    items = [item.to_line_item() for item in request.items]
    try:
        session = await checkout.create_preference(items)
    except CheckoutNotConfiguredError:
        logger.error("Checkout requested but MP_ACCESS_TOKEN is not set")
        raise HTTPException(status_code=500, detail=ERROR_CHECKOUT_NOT_CONFIGURED)
    except CheckoutError as e:
        raise HTTPException(status_code=502, detail=e.message)

    return CheckoutResponse(id=session.id, init_point=session.init_point)
