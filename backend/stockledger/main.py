# backend/stockledger/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from stockledger.api.action_routes import router as action_router
from stockledger.api.admin_routes import router as admin_router
from stockledger.api.auth_routes import router as auth_router
from stockledger.api.routes import router as api_router
from stockledger.core.config import settings
from stockledger.core.database import SessionLocal
from stockledger.core.errors import (
    AuthenticationRequired,
    AuthorizationDenied,
    DataAccessError,
    NotFound,
    ValidationFailure,
)
from stockledger.core.logging import configure_logging
from stockledger.core.seed import seed_demo_data
from stockledger.services.cache import ResultCache

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level)

    # one cache per process, shared by every request
    app.state.cache = ResultCache()

    if settings.seed_demo_data:
        db = SessionLocal()
        try:
            seed_demo_data(db)
        finally:
            db.close()

    logger.info(f"StockLedger API started (env={settings.app_env})")
    yield


app = FastAPI(title="StockLedger API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["Authorization", "Content-Type"],
)


# ---------- ERROR MAPPING ----------

@app.exception_handler(AuthenticationRequired)
async def handle_unauthenticated(request: Request, exc: AuthenticationRequired):
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"detail": exc.message},
        headers={"WWW-Authenticate": "Bearer"},
    )


@app.exception_handler(AuthorizationDenied)
async def handle_forbidden(request: Request, exc: AuthorizationDenied):
    return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"detail": exc.message})


@app.exception_handler(NotFound)
async def handle_not_found(request: Request, exc: NotFound):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": exc.message})


@app.exception_handler(ValidationFailure)
async def handle_invalid(request: Request, exc: ValidationFailure):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": exc.message, "errors": exc.errors},
    )


@app.exception_handler(DataAccessError)
async def handle_data_access(request: Request, exc: DataAccessError):
    # details are in the log already
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Failed to load data. Please try again."},
    )


app.include_router(auth_router, prefix="/api/auth", tags=["auth"])
app.include_router(api_router, prefix="/api")
app.include_router(action_router, prefix="/api", tags=["actions"])
app.include_router(admin_router, prefix="/api/admin", tags=["admin"])


@app.get("/health")
def health():
    return {"status": "ok"}
