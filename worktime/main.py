import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from worktime.core.config import settings
from worktime.core.database import create_tables
from worktime.core.exceptions import ComplianceError
from worktime.core.logging import setup_logging
from worktime.api.v1.compliance import router as compliance_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    # Tabellen beim Start anlegen (SQLite / lokale Entwicklung)
    await create_tables()
    logger.info("Worktime compliance API started (%s)", settings.APP_ENV)
    yield


app = FastAPI(
    title="Worktime Compliance API",
    description="Arbeitszeit-Compliance: Ruhezeiten, Höchstarbeitszeit, Pausen, Prüfberichte",
    version="1.0.0",
    lifespan=lifespan,
    # Swagger UI nur in Entwicklung – in Produktion DEBUG=false setzen
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ComplianceError)
async def compliance_error_handler(request: Request, exc: ComplianceError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    else:
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.code, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code},
    )


API_PREFIX = "/api/v1"

app.include_router(compliance_router, prefix=API_PREFIX)


@app.get("/health")
async def health_check():
    return {"status": "ok", "service": "Worktime Compliance API", "version": "1.0.0"}
