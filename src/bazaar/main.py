import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bazaar.api.v1 import cart, checkout, orders, vouchers
from bazaar.core.config import settings
from bazaar.core.database import engine
from bazaar.core.redis import close_redis, get_redis
from bazaar.middleware.metrics import PrometheusMiddleware, metrics_endpoint

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("Starting application...")

    # Open the shared Redis pool early so the first checkout does not pay for it
    try:
        redis = await get_redis()
        await redis.ping()
    except Exception as e:
        logger.warning(f"Redis not reachable at startup: {e}")

    yield

    logger.info("Shutting down")
    await close_redis()
    await engine.dispose()


app = FastAPI(
    title="Bazaar Checkout",
    version="1.0.0",
    description="Multi-seller cart aggregation and checkout pricing",
    lifespan=lifespan,
)

# Prometheus Metrics Middleware (must be first to capture all requests)
app.add_middleware(PrometheusMiddleware)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include API routers
app.include_router(cart.router, prefix="/api/v1/cart", tags=["cart"])
app.include_router(vouchers.router, prefix="/api/v1/vouchers", tags=["vouchers"])
app.include_router(checkout.router, prefix="/api/v1/checkout", tags=["checkout"])
app.include_router(orders.router, prefix="/api/v1/orders", tags=["orders"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


# Prometheus metrics endpoint
app.add_route("/metrics", metrics_endpoint)
