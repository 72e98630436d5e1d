from typing import Annotated

from fastapi import APIRouter, Query, Request
from fastapi.responses import HTMLResponse

from actions import items as item_actions
from authz import CurrentUserDep, OptionalUserDep
from db import SessionDep
from models import Category, ItemStatus
from schemas import ItemFilters, Recency

from .common import templates

router = APIRouter(tags=["pages"])


@router.get("/", response_class=HTMLResponse)
def browse(
    request: Request,
    session: SessionDep,
    current: OptionalUserDep,
    filters: Annotated[ItemFilters, Query()],
):
    """Public item listing with the search/filter bar."""
    items = item_actions.get_items(session, filters)
    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "current_user": current,
            "items": items,
            "filters": filters,
            "categories": list(Category),
            "statuses": list(ItemStatus),
            "recency_options": list(Recency),
        },
    )


@router.get("/dashboard", response_class=HTMLResponse)
def dashboard(request: Request, session: SessionDep, current: CurrentUserDep):
    """The signed-in user's own items with resolved/active counts."""
    items = item_actions.get_user_items(session, current)
    resolved = sum(1 for item in items if item.is_resolved)
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "current_user": current,
            "items": items,
            "total": len(items),
            "resolved": resolved,
            "active": len(items) - resolved,
        },
    )
