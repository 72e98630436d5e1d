from pathlib import Path
from typing import Any, Dict

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError

from schemas import ActionResult

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def wants_json(request: Request) -> bool:
    content_type = request.headers.get("content-type", "")
    accept = request.headers.get("accept", "")
    return content_type.startswith("application/json") or accept.startswith("application/json")


async def read_payload(request: Request) -> Dict[str, Any]:
    """
    Accepts either JSON (API/Swagger) or form-data (from HTML form).
    Blank form fields are dropped so optional fields fall back to defaults.
    """
    if request.headers.get("content-type", "").startswith("application/json"):
        data = await request.json()
        return data if isinstance(data, dict) else {}

    form = await request.form()
    return {
        key: value
        for key, value in form.items()
        if not (isinstance(value, str) and value.strip() == "")
    }


def result_json(result: ActionResult) -> JSONResponse:
    return JSONResponse(jsonable_encoder(result), status_code=result.status_code)


def validation_message(exc: ValidationError) -> str:
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ()))
    return f"{field}: {first.get('msg')}" if field else first.get("msg", "Invalid input")


def render_error(request: Request, message: str, status_code: int, current_user=None):
    return templates.TemplateResponse(
        request,
        "error.html",
        {"current_user": current_user, "error": message},
        status_code=status_code,
    )
