from typing import Annotated, List, Optional

from fastapi import APIRouter, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from pydantic import ValidationError
from starlette.datastructures import UploadFile

from actions import items as item_actions
from authz import CurrentUserDep, can_modify_item, ensure_can_modify
from db import SessionDep
from errors import AppError, NotFound
from models import Category, Item, ItemStatus
from schemas import ActionResult, ItemCreate, ItemFilters, ItemRead, ItemUpdate
from storage import delete_image, upload_image

from .common import (
    read_payload,
    render_error,
    result_json,
    templates,
    validation_message,
    wants_json,
)

router = APIRouter(tags=["items"])


def _form_context(current, item: Optional[Item] = None, error: Optional[str] = None) -> dict:
    return {
        "current_user": current,
        "item": item,
        "error": error,
        "categories": list(Category),
        "statuses": list(ItemStatus),
    }


async def _parse_item_form(request: Request, schema):
    """
    Returns (validated item, uploaded image url) from a JSON body or a form post.
    The image, when present, is stored before validation errors are known, so
    the caller must delete it if the action fails.
    """
    payload = await read_payload(request)
    image = payload.pop("image", None)
    # Image references are only ever produced by the upload below.
    payload.pop("image_url", None)
    image_url = None
    if isinstance(image, UploadFile) and image.filename:
        image_url = await upload_image(image)
    try:
        return schema(**payload), image_url
    except ValidationError:
        if image_url:
            delete_image(image_url)
        raise


def _item_form_failure(request: Request, current, message: str, status_code: int):
    if wants_json(request):
        return result_json(ActionResult.fail(message, status_code))
    return templates.TemplateResponse(
        request,
        "item_form.html",
        _form_context(current, error=message),
        status_code=status_code,
    )


def _action_reply(request: Request, current, result: ActionResult, redirect_to: str):
    if wants_json(request):
        return result_json(result)
    if not result.success:
        return render_error(request, result.error, result.status_code, current)
    return RedirectResponse(url=redirect_to, status_code=303)


@router.get("/", response_model=List[ItemRead])
def list_items(
    session: SessionDep,
    current: CurrentUserDep,
    filters: Annotated[ItemFilters, Query()],
):
    """
    List items newest first, optionally filtered by search text, category,
    status, resolution state and posting age.
    """
    return item_actions.get_items(session, filters)


@router.get("/new", response_class=HTMLResponse)
def new_item_page(request: Request, current: CurrentUserDep):
    return templates.TemplateResponse(request, "item_form.html", _form_context(current))


@router.post("/new")
async def create_item(request: Request, session: SessionDep, current: CurrentUserDep):
    try:
        item_in, image_url = await _parse_item_form(request, ItemCreate)
    except ValidationError as exc:
        return _item_form_failure(request, current, validation_message(exc), 400)
    except AppError as exc:
        return _item_form_failure(request, current, exc.message, exc.status_code)

    result = item_actions.create_item(session, current, item_in, image_url)
    if not result.success and image_url:
        delete_image(image_url)

    if wants_json(request):
        return result_json(result)
    if not result.success:
        return _item_form_failure(request, current, result.error, result.status_code)
    return RedirectResponse(url=f"/items/{result.data.id}", status_code=303)


@router.get("/{item_id}")
def item_detail(request: Request, item_id: int, session: SessionDep, current: CurrentUserDep):
    item = item_actions.get_item_by_id(session, item_id)
    if item is None:
        raise NotFound("Item not found")

    if wants_json(request):
        return JSONResponse(jsonable_encoder(ItemRead.model_validate(item)))

    return templates.TemplateResponse(
        request,
        "item_detail.html",
        {
            "current_user": current,
            "item": item,
            "can_edit": can_modify_item(current, item),
        },
    )


@router.get("/{item_id}/edit", response_class=HTMLResponse)
def edit_item_page(request: Request, item_id: int, session: SessionDep, current: CurrentUserDep):
    item = item_actions.get_item_by_id(session, item_id)
    if item is None:
        raise NotFound("Item not found")
    ensure_can_modify(current, item)
    return templates.TemplateResponse(request, "item_form.html", _form_context(current, item=item))


@router.post("/{item_id}/edit")
async def update_item(request: Request, item_id: int, session: SessionDep, current: CurrentUserDep):
    try:
        item_in, image_url = await _parse_item_form(request, ItemUpdate)
    except ValidationError as exc:
        return _item_form_failure(request, current, validation_message(exc), 400)
    except AppError as exc:
        return _item_form_failure(request, current, exc.message, exc.status_code)

    result = item_actions.update_item(session, current, item_id, item_in, image_url)
    if not result.success and image_url:
        delete_image(image_url)
    return _action_reply(request, current, result, f"/items/{item_id}")


@router.post("/{item_id}/delete")
def delete_item(request: Request, item_id: int, session: SessionDep, current: CurrentUserDep):
    result = item_actions.delete_item(session, current, item_id)
    return _action_reply(request, current, result, "/dashboard")


@router.post("/{item_id}/resolve")
async def resolve_item(request: Request, item_id: int, session: SessionDep, current: CurrentUserDep):
    """
    Set or clear the resolved flag. Expects ``resolved`` as true/false;
    a missing value means "resolved".
    """
    payload = await read_payload(request)
    raw = payload.get("resolved", True)
    resolved = raw if isinstance(raw, bool) else str(raw).strip().lower() in {"1", "true", "yes", "on"}

    result = item_actions.mark_item_as_resolved(session, current, item_id, resolved)
    return _action_reply(request, current, result, f"/items/{item_id}")
