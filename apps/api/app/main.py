from __future__ import annotations

import asyncio
import logging

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException

from app.config import settings
from app.conversifi.client import ConversifiNotConfigured
from app.db import SessionLocal
from app.logging_setup import configure_logging
from app.providers import ProviderApiError
from app.routers.auth import router as auth_router
from app.routers.clients import router as clients_router
from app.routers.dashboard import router as dashboard_router
from app.routers.files import router as files_router
from app.routers.integrations import router as integrations_router
from app.routers.kanban import router as kanban_router
from app.routers.onboarding import router as onboarding_router
from app.routers.reports import router as reports_router
from app.routers.stats import router as stats_router
from app.routers.users import router as users_router
from app.routers.webhooks import router as webhooks_router
from app.security import IntegrationSecretDecryptError
from app.stats.service import sync_campaign_stats
from app.storage import StorageError

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
  title="Client Portal API",
  version="0.1.0",
  docs_url="/docs" if settings.api_docs_enabled else None,
  redoc_url="/redoc" if settings.api_docs_enabled else None,
  openapi_url="/openapi.json" if settings.api_docs_enabled else None,
)


def _error(status_code: int, message: str, details=None, headers: dict[str, str] | None = None) -> JSONResponse:
  content = {"success": False, "error": message}
  if details:
    content["details"] = details
  return JSONResponse(status_code=status_code, content=content, headers=headers)


@app.exception_handler(HTTPException)
async def _http_error_handler(_, exc: HTTPException) -> JSONResponse:
  if isinstance(exc.detail, dict):
    d = dict(exc.detail)
    return _error(exc.status_code, str(d.pop("error", "Request failed")), d.pop("details", None) or d or None, headers=exc.headers)
  return _error(exc.status_code, str(exc.detail), headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def _validation_error_handler(_, exc: RequestValidationError) -> JSONResponse:
  errors = exc.errors()
  first = errors[0] if errors else {}
  field = ".".join(str(p) for p in first.get("loc", ())[1:]) or "body"
  details = [{"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")} for e in errors]
  return _error(400, f"Invalid {field}: {first.get('msg', 'invalid value')}", details)


@app.exception_handler(ProviderApiError)
async def _provider_error_handler(_, exc: ProviderApiError) -> JSONResponse:
  code = 502 if exc.status_code >= 500 else 400
  return _error(code, f"{exc.provider} API error: {exc.message}", {"status_code": exc.status_code, "provider": exc.details})


@app.exception_handler(httpx.HTTPError)
async def _upstream_unreachable_handler(_, exc: httpx.HTTPError) -> JSONResponse:
  logger.warning("upstream request failed: %s", exc)
  return _error(502, "Upstream service unreachable")


@app.exception_handler(IntegrationSecretDecryptError)
async def _integration_secret_error_handler(_, exc: IntegrationSecretDecryptError) -> JSONResponse:
  return _error(400, str(exc))


@app.exception_handler(ConversifiNotConfigured)
async def _conversifi_not_configured_handler(_, exc: ConversifiNotConfigured) -> JSONResponse:
  return _error(500, str(exc))


@app.exception_handler(StorageError)
async def _storage_error_handler(_, exc: StorageError) -> JSONResponse:
  return _error(400, str(exc))


@app.exception_handler(SQLAlchemyError)
async def _db_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
  logger.error("database error on %s %s: %s", request.method, request.url.path, exc)
  return _error(500, "Database error")


@app.exception_handler(Exception)
async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
  logger.exception("unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
  return _error(500, "Internal server error")


app.add_middleware(
  CORSMiddleware,
  allow_origins=settings.cors_origin_list(),
  allow_credentials=False,
  allow_methods=["*"],
  allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(clients_router)
app.include_router(integrations_router)
app.include_router(webhooks_router)
app.include_router(stats_router)
app.include_router(dashboard_router)
app.include_router(reports_router)
app.include_router(onboarding_router)
app.include_router(kanban_router)
app.include_router(files_router)


@app.middleware("http")
async def _security_headers_middleware(request, call_next):
  response = await call_next(request)
  response.headers.setdefault("X-Content-Type-Options", "nosniff")
  response.headers.setdefault("X-Frame-Options", "DENY")
  response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
  return response


@app.get("/health")
async def health() -> dict:
  return {"success": True}


@app.get("/version")
async def version() -> dict:
  return {"version": settings.app_version, "build_sha": settings.build_sha}


_stats_loop_task: asyncio.Task | None = None


def _is_test_db() -> bool:
  db_name = settings.database_url.rsplit("/", 1)[-1]
  return "test" in db_name


async def _stats_sync_loop() -> None:
  while True:
    await asyncio.sleep(max(60, int(settings.stats_sync_interval_seconds)))
    async with SessionLocal() as db:
      try:
        out = await sync_campaign_stats(db)
        logger.info("scheduled stats sync: %s", out.get("message") or out.get("error"))
      except Exception:
        # Never crash the app due to sync failures.
        logger.exception("scheduled stats sync failed")


@app.on_event("startup")
async def _startup() -> None:
  global _stats_loop_task
  if _is_test_db():
    return
  if not settings.app_secret or settings.app_secret.strip().lower() in {"dev-secret-change-me", "replace_with_strong_random_secret"}:
    raise RuntimeError("APP_SECRET is required and must not be a placeholder")
  if not settings.fernet_key or settings.fernet_key.strip() in {"AAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAA=", "REPLACE_WITH_FERNET_KEY"}:
    raise RuntimeError("FERNET_KEY is required and must not be a placeholder")
  if settings.stats_sync_enabled and _stats_loop_task is None:
    _stats_loop_task = asyncio.create_task(_stats_sync_loop())
