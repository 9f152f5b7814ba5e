from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from pathlib import Path
import logging

from app.config import get_settings
from app.database import engine, Base
from app.exceptions import EmptyOrderError, NotFoundError, StorageError, ValidationError
from app.api import products, orders, health

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    """
    # Startup
    logger.info(f"Starting up application with the '{settings.STORE_BACKEND}' store...")

    if settings.STORE_BACKEND == "sql":
        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created successfully")

    Path(settings.IMAGE_DIR).mkdir(parents=True, exist_ok=True)
    Path(settings.RECEIPT_DIR).mkdir(parents=True, exist_ok=True)

    yield

    # Shutdown
    logger.info("Shutting down application...")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="""
    Order-taking backend for a small storefront:

    - **Catalog**: CRUD for products, with image upload
    - **Orders**: Submit a cart, cancel an order, list order history
    - **Receipts**: Plain-text receipts rendered by Celery workers
    - **Caching**: Redis-based caching for product details

    ## Fulfillment

    Every cart line is resolved independently against current stock.
    Unknown products are skipped and quantities are clamped to what is on
    hand; the order is only rejected when nothing can be fulfilled.
    Cancelling an order returns its quantities to stock.
    """,
    version=settings.APP_VERSION,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(ValidationError)
@app.exception_handler(EmptyOrderError)
async def bad_request_handler(request: Request, exc: Exception):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.error(f"Storage failure on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Storage unavailable, please retry"}
    )


# Include API routers
app.include_router(health.router, prefix="/api/v1")
app.include_router(products.router, prefix="/api/v1")
app.include_router(orders.router, prefix="/api/v1")


@app.get("/", tags=["Root"])
def root():
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "redoc": "/redoc",
        "health": "/api/v1/health"
    }
