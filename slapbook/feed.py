"""GET / feed, post discussion pages, and the post/comment write routes."""

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import RedirectResponse
from pydantic import ValidationError

from .auth import current_user, viewer_username
from .backend import Backend, BackendError, get_backend
from .config import COMMENT_MAX_CHARS, POST_MAX_CHARS
from .models import CommentCreate, CurrentUser, PostCreate, first_error
from .templating import back_to, render

router = APIRouter()


def _feed_page(request: Request, user: CurrentUser, backend: Backend,
               msg: str = "", draft: str = "", status_code: int = 200):
    posts = []
    try:
        posts = backend.list_posts()
    except BackendError as e:
        msg = msg or str(e)
    return render(request, "feed.html", {
        "me": user,
        "my_username": viewer_username(backend, user),
        "posts": posts,
        "msg": msg,
        "draft": draft,
        "max_chars": POST_MAX_CHARS,
    }, status_code=status_code)


def _post_page(request: Request, user: CurrentUser, backend: Backend, post_id: str,
               msg: str = "", draft: str = "", status_code: int = 200):
    post, comments = None, []
    try:
        post = backend.get_post(post_id)
        if post is None:
            msg, status_code = msg or "Post not found.", 404
        else:
            comments = backend.list_comments(post_id)
    except BackendError as e:
        msg = msg or str(e)
    return render(request, "post.html", {
        "me": user,
        "post": post,
        "comments": comments,
        "msg": msg,
        "draft": draft,
        "max_chars": COMMENT_MAX_CHARS,
    }, status_code=status_code)


@router.get("/")
def feed(request: Request, user: CurrentUser = Depends(current_user),
         backend: Backend = Depends(get_backend)):
    return _feed_page(request, user, backend)


@router.post("/posts")
def create_post(request: Request, content: str = Form(""),
                user: CurrentUser = Depends(current_user),
                backend: Backend = Depends(get_backend)):
    try:
        post = PostCreate(content=content)
        backend.create_post(user.id, post)
    except ValidationError as e:
        return _feed_page(request, user, backend, msg=first_error(e), draft=content, status_code=400)
    except BackendError as e:
        return _feed_page(request, user, backend, msg=str(e), draft=content, status_code=502)
    return RedirectResponse("/", status_code=303)


@router.post("/posts/{post_id}/delete")
def delete_post(request: Request, post_id: str, next: str = Form("/"),
                user: CurrentUser = Depends(current_user),
                backend: Backend = Depends(get_backend)):
    try:
        backend.delete_post(post_id)
    except BackendError as e:
        return _feed_page(request, user, backend, msg=str(e), status_code=502)
    return back_to(next, "/")


@router.get("/post/{post_id}")
def post_discussion(request: Request, post_id: str,
                    user: CurrentUser = Depends(current_user),
                    backend: Backend = Depends(get_backend)):
    return _post_page(request, user, backend, post_id)


@router.post("/post/{post_id}/comments")
def add_comment(request: Request, post_id: str, content: str = Form(""),
                user: CurrentUser = Depends(current_user),
                backend: Backend = Depends(get_backend)):
    try:
        comment = CommentCreate(content=content)
        backend.create_comment(post_id, user.id, comment)
    except ValidationError as e:
        return _post_page(request, user, backend, post_id,
                          msg=first_error(e), draft=content, status_code=400)
    except BackendError as e:
        return _post_page(request, user, backend, post_id,
                          msg=str(e), draft=content, status_code=502)
    return RedirectResponse(f"/post/{post_id}", status_code=303)


@router.post("/comments/{comment_id}/delete")
def delete_comment(request: Request, comment_id: str, post_id: str = Form(""),
                   user: CurrentUser = Depends(current_user),
                   backend: Backend = Depends(get_backend)):
    try:
        backend.delete_comment(comment_id)
    except BackendError as e:
        if not post_id:
            return _feed_page(request, user, backend, msg=str(e), status_code=502)
        return _post_page(request, user, backend, post_id, msg=str(e), status_code=502)
    # Without the hidden post_id there is no discussion to return to
    return RedirectResponse(f"/post/{post_id}" if post_id else "/", status_code=303)
