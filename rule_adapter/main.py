"""FastAPI application entry point."""
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from rule_adapter.core.database import engine, grouping_engine, Base
from rule_adapter.core.errors import ConfigurationError, FieldRangeError, UnsupportedOperationError
from rule_adapter.core.logging_config import logger
from rule_adapter.api.v1.router import api_router

logger.info("Starting policy rule service")

# Create rule tables in every configured store
try:
    Base.metadata.create_all(bind=engine)
    if grouping_engine is not None:
        Base.metadata.create_all(bind=grouping_engine)
    logger.info("Database tables initialized successfully")
except Exception as e:
    logger.error(f"Failed to initialize database tables: {e}")
    raise

app = FastAPI(
    title="Policy Rule Service",
    description="Relational storage for tuple-shaped authorization policy rules",
    version="1.0.0"
)

app.include_router(api_router)
logger.info("API routes registered successfully")


@app.exception_handler(FieldRangeError)
async def field_range_error_handler(request: Request, exc: FieldRangeError):
    logger.warning(f"Rejected out-of-range rule request: {exc}")
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error(f"Adapter configuration error: {exc}")
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


@app.exception_handler(UnsupportedOperationError)
async def unsupported_operation_handler(request: Request, exc: UnsupportedOperationError):
    return JSONResponse(status_code=status.HTTP_501_NOT_IMPLEMENTED, content={"detail": str(exc)})


@app.get("/", tags=["Health"])
def read_root():
    """Basic health check endpoint."""
    return {"status": "Policy Rule Service is Operational", "docs": "/docs"}


@app.get("/health", tags=["Health"], status_code=status.HTTP_200_OK)
def health_check():
    """Detailed health check endpoint with store status."""
    health_status = {
        "status": "healthy",
        "service": "Policy Rule Service",
        "version": "1.0.0",
        "checks": {}
    }

    stores = {"database": engine}
    if grouping_engine is not None:
        stores["grouping_database"] = grouping_engine

    for name, store_engine in stores.items():
        try:
            with store_engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            health_status["checks"][name] = {
                "status": "healthy",
                "message": "Database connection successful"
            }
        except Exception as e:
            health_status["status"] = "degraded"
            health_status["checks"][name] = {
                "status": "unhealthy",
                "message": f"Database connection failed: {str(e)}"
            }
            logger.error(f"{name} health check failed: {e}")

    status_code = status.HTTP_200_OK
    if health_status["status"] == "degraded":
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return JSONResponse(content=health_status, status_code=status_code)
