from typing import Optional

from fastapi import APIRouter, Cookie, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from pydantic import ValidationError

import config
from actions import auth as auth_actions
from authz import CurrentUserDep, OptionalUserDep
from db import SessionDep
from schemas import ActionResult, LoginData, SignUpData, UserRead
from sessions import clear_session_cookie, set_session_cookie

from .common import read_payload, templates, validation_message, wants_json

router = APIRouter(tags=["auth"])


def _guest_page(request: Request, current, template: str):
    if current is not None:
        return RedirectResponse(url="/dashboard", status_code=303)
    return templates.TemplateResponse(request, template, {"current_user": None})


def _auth_response(request: Request, result: ActionResult, template: str):
    """Turn a sign-in/sign-up result into a JSON reply or a page, setting the cookie on success."""
    if not result.success:
        if wants_json(request):
            return JSONResponse(
                {"success": False, "error": result.error},
                status_code=result.status_code,
            )
        return templates.TemplateResponse(
            request,
            template,
            {"current_user": None, "error": result.error},
            status_code=result.status_code,
        )

    user: UserRead = result.data["user"]
    if wants_json(request):
        resp = JSONResponse({"success": True, "user": jsonable_encoder(user)})
    else:
        resp = RedirectResponse(url="/dashboard", status_code=303)
    set_session_cookie(resp, result.data["token"])
    return resp


@router.get("/login", response_class=HTMLResponse)
def login_page(request: Request, current: OptionalUserDep):
    return _guest_page(request, current, "login.html")


@router.get("/signup", response_class=HTMLResponse)
def signup_page(request: Request, current: OptionalUserDep):
    return _guest_page(request, current, "signup.html")


@router.post("/signup")
async def signup(request: Request, session: SessionDep):
    """
    Register a new student account and sign it in.
    Accepts either JSON (API/Swagger) or form-data (from HTML form).
    """
    payload = await read_payload(request)
    try:
        data = SignUpData(**payload)
    except ValidationError as exc:
        result = ActionResult.fail(validation_message(exc))
    else:
        result = auth_actions.sign_up(session, data)
    return _auth_response(request, result, "signup.html")


@router.post("/login")
async def login(request: Request, session: SessionDep):
    """
    Log in with email + password and set the session cookie.
    Accepts either JSON (API/Swagger) or form-data (from HTML form).
    """
    payload = await read_payload(request)
    try:
        data = LoginData(**payload)
    except ValidationError:
        result = ActionResult.fail("Invalid email or password")
    else:
        result = auth_actions.sign_in(session, data)
    return _auth_response(request, result, "login.html")


@router.post("/logout")
def logout(
    request: Request,
    session: SessionDep,
    session_token: Optional[str] = Cookie(default=None, alias=config.SESSION_COOKIE_NAME),
):
    """
    Revoke the session, clear the cookie and go back to the login page.
    """
    auth_actions.sign_out(session, session_token)
    if wants_json(request):
        response = JSONResponse({"success": True})
    else:
        response = RedirectResponse(url="/login", status_code=303)
    clear_session_cookie(response)
    return response


@router.get("/me", response_model=UserRead)
def read_me(current: CurrentUserDep):
    """
    Get info about the currently logged-in user.
    """
    return current
