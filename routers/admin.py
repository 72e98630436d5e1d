from typing import Annotated

from fastapi import APIRouter, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from pydantic import ValidationError

from actions import admin as admin_actions
from actions import items as item_actions
from authz import AdminUserDep
from db import SessionDep
from models import Category, ItemStatus, Role
from schemas import ActionResult, ItemFilters, SignUpData

from .common import read_payload, render_error, result_json, templates, validation_message, wants_json

router = APIRouter(tags=["admin"])


def _users_page(request: Request, session: SessionDep, admin, error=None, status_code: int = 200):
    users = admin_actions.get_all_users(session, admin)
    return templates.TemplateResponse(
        request,
        "admin.html",
        {"current_user": admin, "users": users, "error": error},
        status_code=status_code,
    )


@router.get("/", response_class=HTMLResponse)
def admin_home(request: Request, session: SessionDep, admin: AdminUserDep):
    return _users_page(request, session, admin)


@router.get("/users")
def list_users(request: Request, session: SessionDep, admin: AdminUserDep):
    """
    All users, newest first, with their item counts.
    """
    if wants_json(request):
        return JSONResponse(jsonable_encoder(admin_actions.get_all_users(session, admin)))
    return _users_page(request, session, admin)


@router.post("/users/{user_id}/delete")
def delete_user(request: Request, user_id: int, session: SessionDep, admin: AdminUserDep):
    result = admin_actions.delete_user(session, admin, user_id)
    if wants_json(request):
        return result_json(result)
    if not result.success:
        return render_error(request, result.error, result.status_code, admin)
    return RedirectResponse(url="/admin/users", status_code=303)


async def _create_user(request: Request, session: SessionDep, admin, role: Role):
    payload = await read_payload(request)
    try:
        data = SignUpData(**payload)
    except ValidationError as exc:
        result = ActionResult.fail(validation_message(exc))
    else:
        if role == Role.ADMIN:
            result = admin_actions.create_admin_user(session, admin, data)
        elif role == Role.STUDENT:
            result = admin_actions.create_student_user(session, admin, data)
        else:
            raise ValueError(f"Unhandled role: {role!r}")

    if wants_json(request):
        return result_json(result)
    if not result.success:
        return _users_page(request, session, admin, error=result.error, status_code=result.status_code)
    return RedirectResponse(url="/admin/users", status_code=303)


@router.post("/users/admin")
async def create_admin_user(request: Request, session: SessionDep, admin: AdminUserDep):
    return await _create_user(request, session, admin, Role.ADMIN)


@router.post("/users/student")
async def create_student_user(request: Request, session: SessionDep, admin: AdminUserDep):
    return await _create_user(request, session, admin, Role.STUDENT)


@router.get("/items", response_class=HTMLResponse)
def all_items(
    request: Request,
    session: SessionDep,
    admin: AdminUserDep,
    filters: Annotated[ItemFilters, Query()],
):
    items = item_actions.get_items(session, filters)
    return templates.TemplateResponse(
        request,
        "admin_items.html",
        {
            "current_user": admin,
            "items": items,
            "filters": filters,
            "categories": list(Category),
            "statuses": list(ItemStatus),
        },
    )
