"""GET /activity - shared weekly dashboard.
POST /activity - quick log, POST /activity/{id}/delete - remove a log.
"""

from datetime import datetime, timedelta
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import RedirectResponse
from pydantic import ValidationError

from .analytics import TZ, build_dashboard_data, start_of_week
from .auth import current_user, viewer_username
from .backend import Backend, BackendError, get_backend
from .config import DASHBOARD_ROW_CAP, LOOKBACK_DAYS, RECENT_LOGS_SHOWN
from .models import CATEGORIES, ActivityCreate, CurrentUser, first_error
from .templating import back_to, render

router = APIRouter()

EMPTY_FORM = {"category": "study", "minutes": "30", "title": "", "occurred_at": ""}


def fetch_shared_logs(backend: Backend, now: datetime):
    """Everyone's logs inside the look-back window, newest first."""
    return backend.list_activity(now - timedelta(days=LOOKBACK_DAYS), DASHBOARD_ROW_CAP)


def _activity_page(request: Request, user: CurrentUser, backend: Backend,
                   msg: str = "", form: dict | None = None, status_code: int = 200):
    now = datetime.now(TZ)
    logs, dash = None, None
    try:
        logs = fetch_shared_logs(backend, now)
    except BackendError as e:
        msg = msg or str(e)
    if logs is not None:
        dash = build_dashboard_data(logs, now)
    return render(request, "activity.html", {
        "me": user,
        "my_username": viewer_username(backend, user),
        "msg": msg,
        "week_start": start_of_week(now),
        "dash": dash,
        "recent": (logs or [])[:RECENT_LOGS_SHOWN],
        "categories": CATEGORIES,
        "form": form or EMPTY_FORM,
    }, status_code=status_code)


@router.get("/activity")
def activity_dashboard(request: Request, category: str = "study", minutes: str = "30",
                       user: CurrentUser = Depends(current_user),
                       backend: Backend = Depends(get_backend)):
    if category not in CATEGORIES:
        category = "study"
    form = dict(EMPTY_FORM, category=category, minutes=minutes)
    return _activity_page(request, user, backend, form=form)


@router.post("/activity")
def create_log(request: Request, category: str = Form("study"), minutes: str = Form(""),
               title: str = Form(""), occurred_at: str = Form(""),
               user: CurrentUser = Depends(current_user),
               backend: Backend = Depends(get_backend)):
    form = {"category": category, "minutes": minutes, "title": title, "occurred_at": occurred_at}
    try:
        activity = ActivityCreate(category=category, minutes=minutes, title=title,
                                  occurred_at=occurred_at)
        backend.create_activity(user.id, activity)
    except ValidationError as e:
        return _activity_page(request, user, backend, msg=first_error(e), form=form, status_code=400)
    except BackendError as e:
        return _activity_page(request, user, backend, msg=str(e), form=form, status_code=502)
    # Title and time reset; category and minutes carry over to the next log
    query = urlencode({"category": activity.category, "minutes": minutes})
    return RedirectResponse(f"/activity?{query}", status_code=303)


@router.post("/activity/{log_id}/delete")
def delete_log(request: Request, log_id: str, next: str = Form("/activity"),
               user: CurrentUser = Depends(current_user),
               backend: Backend = Depends(get_backend)):
    try:
        backend.delete_activity(log_id)
    except BackendError as e:
        return _activity_page(request, user, backend, msg=str(e), status_code=502)
    return back_to(next, "/activity")
