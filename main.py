import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

import config
from db import create_db_and_tables, engine
from errors import AppError, StoreFailure, Unauthenticated
from middleware import SessionGateMiddleware
from routers import admin, auth, items, pages
from routers.common import render_error, wants_json
from sessions import clear_session_cookie, purge_expired_sessions

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Campus Lost & Found")

app.add_middleware(SessionGateMiddleware)
app.mount(
    "/uploads",
    StaticFiles(directory=config.UPLOAD_DIR, check_dir=False),
    name="uploads",
)


@app.on_event("startup")
def on_startup() -> None:
    config.validate_runtime_config()
    try:
        create_db_and_tables()
        with Session(engine) as session:
            purge_expired_sessions(session)
    except SQLAlchemyError:
        logger.exception("Database initialization failed. Check DATABASE_URL and Postgres credentials.")


@app.exception_handler(Unauthenticated)
async def unauthenticated_handler(request: Request, exc: Unauthenticated):
    if wants_json(request):
        response = JSONResponse({"success": False, "error": exc.message}, status_code=401)
    else:
        response = RedirectResponse(url="/login", status_code=303)
    # A stale cookie would otherwise bounce between /login and /dashboard.
    clear_session_cookie(response)
    return response


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if wants_json(request):
        return JSONResponse({"success": False, "error": exc.message}, status_code=exc.status_code)
    return render_error(request, exc.message, exc.status_code)


@app.exception_handler(SQLAlchemyError)
async def store_failure_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return await app_error_handler(request, StoreFailure())


app.include_router(auth.router)
app.include_router(pages.router)
app.include_router(items.router, prefix="/items")
app.include_router(admin.router, prefix="/admin")
