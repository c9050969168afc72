import os

os.environ["ALLOWED_EMAILS"] = "ada@example.com, Bo@Example.com"
os.environ.setdefault("TZ", "America/Chicago")
os.environ["SESSION_SECRET"] = "test-secret"

from datetime import datetime, timedelta  # noqa: E402
from itertools import count  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from slapbook.analytics import TZ  # noqa: E402
from slapbook.backend import AuthSession, BackendError, get_backend  # noqa: E402
from slapbook.main import app  # noqa: E402
from slapbook.models import (  # noqa: E402
    ActivityRecord, Comment, CurrentUser, Post, Profile, ProfileRef,
)

ADA = CurrentUser(id="u-ada", email="ada@example.com")
BO = CurrentUser(id="u-bo", email="bo@example.com")


class FakeBackend:
    """In-memory stand-in for the Supabase-backed Backend."""

    def __init__(self):
        self._ids = count(1)
        self.accounts = {"ada@example.com": ("secret", "tok-ada"), "bo@example.com": ("pw", "tok-bo")}
        self.tokens = {"tok-ada": ADA, "tok-bo": BO}
        self.refresh_tokens = {}
        self.expired = set()
        self.profiles = [
            Profile(id=ADA.id, username="ada", display_name="Ada"),
            Profile(id=BO.id, username="bo", display_name="Bo"),
        ]
        self.posts: list[Post] = []
        self.comments: list[Comment] = []
        self.logs: list[ActivityRecord] = []
        self.fail: set[str] = set()
        self.calls: list[str] = []
        self.used_token = None

    def _check(self, name):
        self.calls.append(name)
        if name in self.fail:
            raise BackendError(f"{name} is unavailable")

    def _next_id(self, prefix):
        return f"{prefix}{next(self._ids)}"

    def _ref(self, user_id):
        p = self.profile_by_id(user_id)
        return ProfileRef(username=p.username, display_name=p.display_name) if p else None

    def use_token(self, access_token):
        self.used_token = access_token

    def sign_in(self, email, password):
        self._check("sign_in")
        expected = self.accounts.get(email)
        if expected is None or expected[0] != password:
            raise BackendError("Invalid login credentials")
        token = expected[1]
        self.refresh_tokens["r-" + token] = token
        return AuthSession(self.tokens[token], token, "r-" + token)

    def get_user(self, access_token):
        self._check("get_user")
        if access_token in self.expired:
            raise BackendError("JWT expired")
        return self.tokens.get(access_token)

    def refresh(self, refresh_token):
        self._check("refresh")
        old = self.refresh_tokens.get(refresh_token)
        if old is None:
            return None
        new = old + "-2"
        self.tokens[new] = self.tokens[old]
        return AuthSession(self.tokens[new], new, "r-" + new)

    def sign_out(self, access_token):
        self._check("sign_out")

    def profile_by_id(self, user_id):
        self._check("profile_by_id")
        return next((p for p in self.profiles if p.id == user_id), None)

    def profile_by_username(self, username):
        self._check("profile_by_username")
        return next((p for p in self.profiles if p.username == username), None)

    def list_posts(self, user_id=None):
        self._check("list_posts")
        rows = [p for p in self.posts if user_id is None or p.user_id == user_id]
        return sorted(rows, key=lambda p: p.created_at, reverse=True)[:50]

    def get_post(self, post_id):
        self._check("get_post")
        return next((p for p in self.posts if p.id == post_id), None)

    def create_post(self, user_id, post):
        self._check("create_post")
        self.posts.append(Post(id=self._next_id("p"), user_id=user_id, content=post.content,
                               created_at=datetime.now(TZ), profile=self._ref(user_id)))

    def delete_post(self, post_id):
        self._check("delete_post")
        self.posts = [p for p in self.posts if p.id != post_id]

    def list_comments(self, post_id):
        self._check("list_comments")
        return sorted((c for c in self.comments if c.post_id == post_id), key=lambda c: c.created_at)

    def create_comment(self, post_id, user_id, comment):
        self._check("create_comment")
        self.comments.append(Comment(id=self._next_id("c"), post_id=post_id, user_id=user_id,
                                     content=comment.content, created_at=datetime.now(TZ),
                                     profile=self._ref(user_id)))

    def delete_comment(self, comment_id):
        self._check("delete_comment")
        self.comments = [c for c in self.comments if c.id != comment_id]

    def list_activity(self, since, limit, user_id=None):
        self._check("list_activity")
        rows = [l for l in self.logs
                if l.occurred_at >= since and (user_id is None or l.user_id == user_id)]
        return sorted(rows, key=lambda l: l.occurred_at, reverse=True)[:limit]

    def create_activity(self, user_id, activity):
        self._check("create_activity")
        row = activity.to_row(user_id)
        row.setdefault("occurred_at", datetime.now(TZ))
        self.logs.append(ActivityRecord(id=self._next_id("a"), profile=self._ref(user_id), **row))

    def delete_activity(self, log_id):
        self._check("delete_activity")
        self.logs = [l for l in self.logs if l.id != log_id]

    # test helper
    def add_log(self, user_id, category, minutes, when):
        self.logs.append(ActivityRecord(id=self._next_id("a"), user_id=user_id, category=category,
                                        minutes=minutes, occurred_at=when,
                                        profile=self._ref(user_id)))


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def client(backend):
    app.dependency_overrides[get_backend] = lambda: backend
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def signed_in(client):
    r = client.post("/login", data={"email": "ada@example.com", "password": "secret"},
                    follow_redirects=False)
    assert r.status_code == 303
    return client


@pytest.fixture
def now():
    return datetime.now(TZ)


@pytest.fixture
def yesterday(now):
    return now - timedelta(days=1)
