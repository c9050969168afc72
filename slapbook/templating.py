"""Jinja2 templates shared by the page routers, plus display filters."""

from datetime import datetime
from pathlib import Path
from urllib.parse import urlsplit

from fastapi import Request
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates

from .analytics import TZ

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))


def _fmt_local(dt: datetime | None) -> str:
    if dt is None:
        return ""
    return dt.astimezone(TZ).strftime("%b %d, %Y %I:%M %p")


def _fmt_date(dt: datetime) -> str:
    return dt.astimezone(TZ).strftime("%b %d, %Y")


def _fmt_minutes(n) -> str:
    return f"{n}m"


templates.env.filters["local_time"] = _fmt_local
templates.env.filters["local_date"] = _fmt_date
templates.env.filters["minutes"] = _fmt_minutes


def render(request: Request, name: str, context: dict, status_code: int = 200):
    return templates.TemplateResponse(request, name, context, status_code=status_code)


def back_to(path: str | None, default: str) -> RedirectResponse:
    """303 to a same-site path taken from a form, else ``default``."""
    if not path or not path.startswith("/"):
        return RedirectResponse(default, status_code=303)
    # Browsers read a backslash as "/", so "/\host" names another host
    parts = urlsplit(path.replace("\\", "/"))
    if parts.scheme or parts.netloc:
        path = default
    return RedirectResponse(path, status_code=303)
