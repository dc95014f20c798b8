"""Main FastAPI application."""
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from anoncheckin.api.deps import get_services
from anoncheckin.api.v1.router import api_router
from anoncheckin.core.config import settings
from anoncheckin.core.errors import LedgerError
from anoncheckin.core.logging_config import get_logger, setup_logging
from anoncheckin.core.rate_limit import limiter
from anoncheckin.middleware import LoggingMiddleware
from anoncheckin.schemas import ErrorDetail, ErrorResponse
from anoncheckin.services import LedgerServices

setup_logging(level=settings.LOG_LEVEL, json_logs=settings.ENVIRONMENT == "production")
logger = get_logger(__name__)

if settings.ENVIRONMENT == "production":
    settings.validate_production_config()

logger.info(
    "application_starting",
    app_title=settings.APP_TITLE,
    app_version=settings.APP_VERSION,
    environment=settings.ENVIRONMENT,
    chain_id=settings.CHAIN_ID,
    contract_address=settings.CONTRACT_ADDRESS,
    can_sign=settings.can_sign,
)

app = FastAPI(
    title=settings.APP_TITLE,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    """Render every ledger error as an ErrorResponse with its own code."""
    logger.info(
        "ledger_error",
        code=exc.code,
        status_code=exc.status_code,
        error=exc.message,
    )
    body = ErrorResponse(error=ErrorDetail(code=exc.code, message=exc.message))
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


app.add_middleware(LoggingMiddleware)


@app.middleware("http")
async def add_api_version_header(request: Request, call_next):
    """Add X-API-Version header to all responses for version tracking."""
    response = await call_next(request)
    response.headers["X-API-Version"] = settings.APP_VERSION
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)

app.include_router(api_router)


@app.get("/health")
def health_check(services: LedgerServices = Depends(get_services)):
    """
    Health check.

    Returns:
        - status: "healthy" or "unhealthy"
        - ledger: node reachability, latest block and whether the contract is deployed
        - signer: whether writes are possible and the active account

    Returns 503 if the node cannot be reached.
    """
    health_status = {
        "status": "healthy",
        "environment": services.settings.ENVIRONMENT,
        "ledger": {
            "chain_id": services.settings.CHAIN_ID,
            "contract_address": services.settings.CONTRACT_ADDRESS,
        },
        "signer": {
            "can_sign": services.submitter.can_sign,
            "account": services.session.account,
        },
    }

    if not services.settings.CONTRACT_ADDRESS:
        health_status["ledger"]["status"] = "not_configured"
        return health_status

    try:
        health_status["ledger"]["contract_deployed"] = services.reader.get_read_handle() is not None
    except Exception as e:
        health_status["status"] = "unhealthy"
        health_status["ledger"]["status"] = f"error: {e}"
        logger.error("health_check_failed", error=str(e))
        raise HTTPException(status_code=503, detail=health_status)

    health_status["ledger"]["status"] = "connected"
    return health_status
