"""FastAPI entry point for the affiliate application."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from urllib.parse import quote

from fastapi import FastAPI, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles

from affiliate_desk import __version__
from affiliate_desk.database import init_db
from affiliate_desk.dependencies import STATIC_PATH
from affiliate_desk.errors import BusinessRuleError, NotFoundError
from affiliate_desk.routers import (
    admin,
    affiliates,
    auth,
    dashboard,
    payouts,
    programs,
    registrations,
    users,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

SERVICE_NAME = "English Booster Affiliate System"


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_db()
    yield


app = FastAPI(title="Affiliate Desk", version=__version__, lifespan=lifespan)

app.include_router(auth.router)
app.include_router(dashboard.router)
app.include_router(users.router)
app.include_router(affiliates.router)
app.include_router(programs.router)
app.include_router(registrations.router)
app.include_router(payouts.router)
app.include_router(admin.router)

app.mount("/static", StaticFiles(directory=str(STATIC_PATH)), name="static")


@app.get("/")
def root() -> RedirectResponse:
    return RedirectResponse(url="/dashboard")


@app.get("/health")
def health() -> Response:
    """Simple health endpoint for load balancers and platform checks."""
    return Response(content='{"status":"ok"}', media_type="application/json")


@app.get("/api/healthcheck")
def healthcheck() -> dict:
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": SERVICE_NAME,
    }


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(BusinessRuleError)
async def business_rule_handler(request: Request, exc: BusinessRuleError):
    logger.info("Rejected %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


@app.exception_handler(HTTPException)
async def http_exception_redirect_login(request: Request, exc: HTTPException):
    """Redirect 401 page requests to /login; API calls keep the JSON body."""
    if exc.status_code != status.HTTP_401_UNAUTHORIZED or request.url.path.startswith("/api/"):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    accept = request.headers.get("accept", "")
    if "text/html" in accept or "*/*" in accept:
        target = request.url.path
        if request.url.query:
            target = f"{target}?{request.url.query}"
        return RedirectResponse(
            url=f"/login?next={quote(target, safe='')}",
            status_code=status.HTTP_303_SEE_OTHER,
        )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})
