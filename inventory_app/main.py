"""
Inventory FastAPI Main Application
Entry point for the inventory purchasing REST API
"""
from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse

from inventory_app.api.v1.api_router import api_router
from inventory_app.core.config import settings
from inventory_app.core.database import check_db_connection, init_db
from inventory_app.core.exceptions import InventoryError
from inventory_app.core.logging import get_logger, setup_logging
from inventory_app.schemas.common import HealthResponse

# Configure logging
setup_logging()

logger = get_logger("api")

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="""
    ## Inventory Purchasing API

    Server side of the purchase order lifecycle.

    ### Key Features:
    - **Purchase Orders**: draft, pending, approved, ordered, received, cancelled
    - **Goods Receipt**: partial receipts with per-line reconciliation
    - **Stock Posting**: immutable stock movement ledger per product
    - **Supplier Accounts**: running order totals and balances
    """,
    docs_url=settings.DOCS_URL,
    redoc_url=settings.REDOC_URL,
    openapi_url=settings.OPENAPI_URL,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add trusted host middleware for production
if not settings.DEBUG:
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=settings.ALLOWED_HOSTS
    )


# Health check endpoint
@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check():
    """
    Health check endpoint for monitoring and load balancers

    Returns system status and database connectivity
    """
    try:
        db_status = check_db_connection()

        return {
            "status": "healthy" if db_status else "degraded",
            "version": settings.APP_VERSION,
            "database": "connected" if db_status else "disconnected",
            "debug": settings.DEBUG
        }
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(status_code=503, detail="Service unavailable")


# System information endpoint
@app.get("/info", tags=["System"])
async def system_info():
    """
    System information endpoint

    Returns application configuration and build information
    """
    return {
        "application": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "api_prefix": settings.API_PREFIX,
        "docs_url": settings.DOCS_URL,
        "features": [
            "Purchase Order Lifecycle",
            "Partial Goods Receipt",
            "Stock Movement Ledger",
            "Supplier Account Totals",
        ],
    }


# Application startup event
@app.on_event("startup")
async def startup_event():
    """
    Application startup tasks

    Verify the database and create missing tables
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    if not check_db_connection():
        logger.error("Failed to connect to database on startup")
        raise RuntimeError("Database connection failed")

    logger.info("Database connection established")
    init_db()
    logger.info("Application startup completed successfully")


# Application shutdown event
@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown tasks"""
    logger.info("Shutting down application")


# Exception handlers
@app.exception_handler(InventoryError)
async def inventory_exception_handler(request: Request, exc: InventoryError):
    """Render domain errors with their kind, code and offending field"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}", exc_info=exc)
    else:
        logger.warning(f"{request.method} {request.url.path} rejected ({exc.code}): {exc.message}")

    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Render request validation failures as INVALID with dotted field paths"""
    field_errors = {}
    for error in exc.errors():
        location = list(error.get("loc", ()))
        if location and location[0] in ("body", "query", "path", "header"):
            location = location[1:]
        path = ".".join(str(part) for part in location) or "body"
        field_errors.setdefault(path, []).append(error.get("msg", "Invalid value"))

    logger.warning(f"{request.method} {request.url.path} invalid: {field_errors}")

    return JSONResponse(
        status_code=400,
        content={
            "error": "INVALID",
            "message": "Request validation failed",
            "code": "INVALID",
            "detail": None,
            "fieldErrors": field_errors,
        }
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler for unhandled errors

    Args:
        request: FastAPI request object
        exc: Exception that occurred

    Returns:
        JSON error response
    """
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={
            "error": "INTERNAL",
            "message": str(exc) if settings.DEBUG else "An unexpected error occurred",
            "code": "INTERNAL",
            "detail": None,
            "fieldErrors": None,
        }
    )


# Include API routers
app.include_router(api_router, prefix=settings.API_PREFIX)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "inventory_app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
