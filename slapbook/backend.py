"""Supabase access for pages and the JSON API.

A Backend wraps one supabase client bound to the viewer's access token, so
the hosted row-level security decides what each query may see or change.
Every failure comes out as BackendError with a message fit for the page.
"""

import logging
from datetime import datetime

import httpx
from fastapi import Request
from postgrest.exceptions import APIError
from supabase import AuthError, Client, create_client
from supabase.client import ClientOptions

from .config import (
    COMMENT_LIMIT, FEED_LIMIT, SUPABASE_ANON_KEY, SUPABASE_URL,
)
from .models import (
    ActivityCreate, ActivityRecord, Comment, CommentCreate, CurrentUser, Post,
    PostCreate, Profile,
)

log = logging.getLogger(__name__)

AUTHOR_COLS = "profiles(username,display_name)"
PROFILE_COLS = "id,username,display_name,created_at"
POST_COLS = f"id,user_id,content,created_at,{AUTHOR_COLS}"
COMMENT_COLS = f"id,post_id,user_id,content,created_at,{AUTHOR_COLS}"
ACTIVITY_COLS = f"id,user_id,category,title,minutes,occurred_at,{AUTHOR_COLS}"


class BackendError(Exception):
    """A backend call failed; ``str(exc)`` is safe to show the user."""


class AuthSession:
    """Result of a sign-in or refresh."""

    def __init__(self, user: CurrentUser, access_token: str, refresh_token: str):
        self.user = user
        self.access_token = access_token
        self.refresh_token = refresh_token


def _message(exc: Exception) -> str:
    msg = getattr(exc, "message", None)
    if msg:
        return str(msg)
    if isinstance(exc, httpx.HTTPError):
        return "Could not reach the server. Try again."
    return str(exc) or exc.__class__.__name__


def new_client(access_token: str | None = None) -> Client:
    client = create_client(
        SUPABASE_URL, SUPABASE_ANON_KEY,
        options=ClientOptions(auto_refresh_token=False, persist_session=False),
    )
    if access_token:
        client.postgrest.auth(access_token)
    return client


def _to_user(user) -> CurrentUser:
    return CurrentUser(id=str(user.id), email=(user.email or "").lower())


class Backend:
    def __init__(self, client: Client):
        self.client = client

    def use_token(self, access_token: str):
        """Act as the user holding ``access_token`` from now on."""
        self.client.postgrest.auth(access_token)

    def _rows(self, query, what: str) -> list[dict]:
        try:
            return query.execute().data or []
        except (APIError, httpx.HTTPError) as e:
            log.warning("%s failed: %s", what, e)
            raise BackendError(_message(e)) from e

    def _auth(self, call, what: str):
        try:
            return call()
        except (AuthError, httpx.HTTPError) as e:
            log.warning("%s failed: %s", what, e)
            raise BackendError(_message(e)) from e

    # ── Auth ──

    def sign_in(self, email: str, password: str) -> AuthSession:
        res = self._auth(
            lambda: self.client.auth.sign_in_with_password({"email": email, "password": password}),
            "sign in",
        )
        if res.user is None or res.session is None:
            raise BackendError("Sign in failed.")
        return AuthSession(_to_user(res.user), res.session.access_token, res.session.refresh_token)

    def get_user(self, access_token: str) -> CurrentUser | None:
        res = self._auth(lambda: self.client.auth.get_user(access_token), "user lookup")
        if res is None or res.user is None:
            return None
        return _to_user(res.user)

    def refresh(self, refresh_token: str) -> AuthSession | None:
        res = self._auth(lambda: self.client.auth.refresh_session(refresh_token), "token refresh")
        if res.user is None or res.session is None:
            return None
        return AuthSession(_to_user(res.user), res.session.access_token, res.session.refresh_token)

    def sign_out(self, access_token: str):
        self._auth(lambda: self.client.auth.admin.sign_out(access_token), "sign out")

    # ── Profiles ──

    def profile_by_id(self, user_id: str) -> Profile | None:
        rows = self._rows(
            self.client.table("profiles").select(PROFILE_COLS).eq("id", user_id).limit(1),
            "profile lookup",
        )
        return Profile.model_validate(rows[0]) if rows else None

    def profile_by_username(self, username: str) -> Profile | None:
        rows = self._rows(
            self.client.table("profiles").select(PROFILE_COLS).eq("username", username).limit(1),
            "profile lookup",
        )
        return Profile.model_validate(rows[0]) if rows else None

    # ── Posts & comments ──

    def list_posts(self, user_id: str | None = None) -> list[Post]:
        q = self.client.table("posts").select(POST_COLS)
        if user_id is not None:
            q = q.eq("user_id", user_id)
        rows = self._rows(q.order("created_at", desc=True).limit(FEED_LIMIT), "post list")
        return [Post.model_validate(r) for r in rows]

    def get_post(self, post_id: str) -> Post | None:
        rows = self._rows(
            self.client.table("posts").select(POST_COLS).eq("id", post_id).limit(1),
            "post lookup",
        )
        return Post.model_validate(rows[0]) if rows else None

    def create_post(self, user_id: str, post: PostCreate):
        self._rows(
            self.client.table("posts").insert({"user_id": user_id, "content": post.content}),
            "post insert",
        )

    def delete_post(self, post_id: str):
        self._rows(self.client.table("posts").delete().eq("id", post_id), "post delete")

    def list_comments(self, post_id: str) -> list[Comment]:
        rows = self._rows(
            self.client.table("comments").select(COMMENT_COLS).eq("post_id", post_id)
            .order("created_at").limit(COMMENT_LIMIT),
            "comment list",
        )
        return [Comment.model_validate(r) for r in rows]

    def create_comment(self, post_id: str, user_id: str, comment: CommentCreate):
        self._rows(
            self.client.table("comments").insert(
                {"post_id": post_id, "user_id": user_id, "content": comment.content}
            ),
            "comment insert",
        )

    def delete_comment(self, comment_id: str):
        self._rows(self.client.table("comments").delete().eq("id", comment_id), "comment delete")

    # ── Activity logs ──

    def list_activity(self, since: datetime, limit: int, user_id: str | None = None) -> list[ActivityRecord]:
        q = self.client.table("activity_logs").select(ACTIVITY_COLS)
        if user_id is not None:
            q = q.eq("user_id", user_id)
        rows = self._rows(
            q.gte("occurred_at", since.isoformat()).order("occurred_at", desc=True).limit(limit),
            "activity list",
        )
        return [ActivityRecord.model_validate(r) for r in rows]

    def create_activity(self, user_id: str, activity: ActivityCreate):
        self._rows(
            self.client.table("activity_logs").insert(activity.to_row(user_id)),
            "activity insert",
        )

    def delete_activity(self, log_id: str):
        self._rows(self.client.table("activity_logs").delete().eq("id", log_id), "activity delete")


def get_backend(request: Request) -> Backend:
    """FastAPI dependency: a Backend acting as the signed-in viewer."""
    return Backend(new_client(request.session.get("access_token")))
