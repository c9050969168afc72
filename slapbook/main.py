"""FastAPI app entry point."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from starlette.middleware.sessions import SessionMiddleware

from .config import ALLOWED_EMAILS, LOG_LEVEL, SESSION_SECRET, SUPABASE_URL

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger("slapbook")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: the backend is remote, so only sanity-check configuration
    if not SUPABASE_URL:
        log.warning("SUPABASE_URL is not set; every backend call will fail")
    if not ALLOWED_EMAILS:
        log.warning("ALLOWED_EMAILS is empty; nobody can sign in")
    yield


app = FastAPI(title="SlapBook", lifespan=lifespan)
app.add_middleware(SessionMiddleware, secret_key=SESSION_SECRET, same_site="lax")

from .auth import LoginRequired, router as auth_router
from .feed import router as feed_router
from .activity import router as activity_router
from .profile import router as profile_router
from .api import router as api_router

app.include_router(auth_router)
app.include_router(feed_router)
app.include_router(activity_router)
app.include_router(profile_router)
app.include_router(api_router)

_static = Path(__file__).resolve().parent.parent / "static"
if _static.is_dir():
    app.mount("/static", StaticFiles(directory=str(_static)), name="static")


@app.exception_handler(LoginRequired)
async def login_required(request: Request, exc: LoginRequired):
    if request.url.path.startswith("/api/"):
        return JSONResponse({"detail": "Not signed in"}, status_code=401)
    return RedirectResponse("/login", status_code=303)


@app.get("/health")
async def health():
    return {"status": "ok"}
