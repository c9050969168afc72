"""GET /profile/{username} - one user's weekly totals, streak, posts and logs."""

from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, Request

from .analytics import TZ, build_profile_stats
from .auth import current_user
from .backend import Backend, BackendError, get_backend
from .config import LOOKBACK_DAYS, PROFILE_ROW_CAP, RECENT_LOGS_SHOWN
from .models import ActivityRecord, CurrentUser, Profile
from .templating import render

router = APIRouter()

TABS = ("posts", "activity")


def fetch_profile_logs(backend: Backend, profile: Profile, now: datetime) -> list[ActivityRecord]:
    return backend.list_activity(
        now - timedelta(days=LOOKBACK_DAYS), PROFILE_ROW_CAP, user_id=profile.id,
    )


@router.get("/profile/{username}")
def profile_page(request: Request, username: str, tab: str = "posts",
                 user: CurrentUser = Depends(current_user),
                 backend: Backend = Depends(get_backend)):
    uname = username.strip().lower()
    if tab not in TABS:
        tab = "posts"
    ctx = {"me": user, "tab": tab, "profile": None, "posts": [], "logs": [],
           "stats": None, "msg": ""}

    try:
        profile = backend.profile_by_username(uname)
    except BackendError as e:
        ctx["msg"] = str(e)
        return render(request, "profile.html", ctx, status_code=502)
    if profile is None:
        ctx["msg"] = f"Profile not found: @{uname}"
        return render(request, "profile.html", ctx, status_code=404)
    ctx["profile"] = profile

    try:
        ctx["posts"] = backend.list_posts(user_id=profile.id)
    except BackendError as e:
        ctx["msg"] = str(e)

    now = datetime.now(TZ)
    try:
        logs = fetch_profile_logs(backend, profile, now)
    except BackendError as e:
        ctx["msg"] = str(e)
    else:
        ctx["stats"] = build_profile_stats(logs, now)
        ctx["logs"] = logs[:RECENT_LOGS_SHOWN]

    return render(request, "profile.html", ctx)
