"""GET /api/activity/summary - shared dashboard JSON.
GET /api/profile/{username}/stats - one user's weekly totals and streak.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException

from .activity import fetch_shared_logs
from .analytics import TZ, build_dashboard_data, build_profile_stats
from .auth import current_user
from .backend import Backend, BackendError, get_backend
from .models import CurrentUser
from .profile import fetch_profile_logs

router = APIRouter(prefix="/api")


@router.get("/activity/summary")
def activity_summary(user: CurrentUser = Depends(current_user),
                     backend: Backend = Depends(get_backend)):
    now = datetime.now(TZ)
    try:
        logs = fetch_shared_logs(backend, now)
    except BackendError as e:
        raise HTTPException(status_code=502, detail=str(e))
    data = build_dashboard_data(logs, now)
    return {
        "week_start": data["week_start"].isoformat(),
        "users": [u.model_dump() for u in data["users"]],
        "streaks": data["streaks"],
        "chart": {"max": data["chart"].max, "bars": data["bars"]},
    }


@router.get("/profile/{username}/stats")
def profile_stats(username: str, user: CurrentUser = Depends(current_user),
                  backend: Backend = Depends(get_backend)):
    uname = username.strip().lower()
    now = datetime.now(TZ)
    try:
        profile = backend.profile_by_username(uname)
        if profile is None:
            raise HTTPException(status_code=404, detail=f"Profile not found: @{uname}")
        logs = fetch_profile_logs(backend, profile, now)
    except BackendError as e:
        raise HTTPException(status_code=502, detail=str(e))
    stats = build_profile_stats(logs, now)
    return {
        "username": profile.username,
        "week_start": stats["week_start"].isoformat(),
        "totals": stats["totals"].model_dump(),
        "streak": stats["streak"],
    }
