from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from ..core.logging import setup_logging
from ..core.config import settings
from .deps import build_services
from .routers import health, invoice

logger = setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await app.state.services.aclose()


app = FastAPI(title="Invoice Ingestion Service", lifespan=lifespan)

# Clients and storage are built once per process and shared by every request
app.state.services = build_services(settings)


# Add custom exception handler for validation errors
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.error(f"Validation error: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # multipart bodies carry raw bytes that JSONResponse cannot encode
    return [{k: v for k, v in err.items() if k not in ("input", "ctx")} for err in exc.errors()]


# Configure CORS to allow dashboard access
# CORS_ORIGINS can be set in .env as comma-separated list
allowed_origins = [origin.strip() for origin in settings.cors_origins.split(",")]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(invoice.router)
