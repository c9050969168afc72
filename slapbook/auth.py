"""GET/POST /login, POST /logout, and the signed-in viewer dependency.

Only addresses in ALLOWED_EMAILS get in. The check runs before any password
is sent to the backend and again on every request, so an address removed
from the list is signed out on its next page load.
"""

import logging

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import RedirectResponse

from .backend import AuthSession, Backend, BackendError, get_backend
from .config import ALLOWED_EMAILS
from .models import CurrentUser
from .templating import render

router = APIRouter()
log = logging.getLogger(__name__)


class LoginRequired(Exception):
    """No usable allow-listed session for this request."""


def is_allowed(email: str | None) -> bool:
    return (email or "").strip().lower() in ALLOWED_EMAILS


def _store(request: Request, session: AuthSession):
    request.session["access_token"] = session.access_token
    request.session["refresh_token"] = session.refresh_token


def _resolve(request: Request, backend: Backend) -> CurrentUser | None:
    access = request.session.get("access_token")
    if not access:
        return None
    try:
        user = backend.get_user(access)
    except BackendError:
        user = None
    if user is not None:
        return user

    refresh = request.session.get("refresh_token")
    if not refresh:
        return None
    try:
        renewed = backend.refresh(refresh)
    except BackendError:
        return None
    if renewed is None:
        return None
    _store(request, renewed)
    backend.use_token(renewed.access_token)
    return renewed.user


def current_user(request: Request, backend: Backend = Depends(get_backend)) -> CurrentUser:
    user = _resolve(request, backend)
    if user is None:
        request.session.clear()
        raise LoginRequired()
    if not is_allowed(user.email):
        log.info("signing out non-allow-listed user %s", user.email)
        _sign_out(request, backend)
        raise LoginRequired()
    return user


def viewer_username(backend: Backend, user: CurrentUser) -> str | None:
    """Username for the "My Profile" link; None just disables the link."""
    try:
        prof = backend.profile_by_id(user.id)
    except BackendError:
        return None
    return prof.username if prof else None


def _sign_out(request: Request, backend: Backend):
    access = request.session.get("access_token")
    request.session.clear()
    if access:
        try:
            backend.sign_out(access)
        except BackendError:
            # Session cookie is already gone; the token just expires on its own
            log.warning("token revoke failed during sign out")


@router.get("/login")
def login_page(request: Request):
    return render(request, "login.html", {"email": "", "msg": ""})


@router.post("/login")
def login(request: Request, email: str = Form(""), password: str = Form(""),
          backend: Backend = Depends(get_backend)):
    e = email.strip().lower()
    if not is_allowed(e):
        log.info("rejected sign in for %s", e)
        return render(request, "login.html",
                      {"email": e, "msg": "This account is not allowed."}, status_code=403)
    try:
        session = backend.sign_in(e, password)
    except BackendError as exc:
        return render(request, "login.html", {"email": e, "msg": str(exc)}, status_code=401)
    request.session.clear()
    _store(request, session)
    return RedirectResponse("/", status_code=303)


@router.post("/logout")
def logout(request: Request, backend: Backend = Depends(get_backend)):
    _sign_out(request, backend)
    return RedirectResponse("/login", status_code=303)
