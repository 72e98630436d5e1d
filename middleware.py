from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse

import config
from routers.common import wants_json

PUBLIC_PATHS = {"/", "/login", "/signup"}
GUEST_ONLY_PATHS = {"/login", "/signup"}
# Uploaded images are served without a session.
EXCLUDED_PREFIXES = ("/uploads/",)


class SessionGateMiddleware(BaseHTTPMiddleware):
    """
    Coarse route protection based only on whether a session cookie is present.
    Whether the cookie is actually valid is decided by the auth dependencies.
    """

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path.startswith(EXCLUDED_PREFIXES):
            return await call_next(request)

        has_session = bool(request.cookies.get(config.SESSION_COOKIE_NAME))

        if not has_session and path not in PUBLIC_PATHS:
            if wants_json(request):
                return JSONResponse({"success": False, "error": "Not logged in"}, status_code=401)
            return RedirectResponse(url="/login", status_code=303)

        if has_session and path in GUEST_ONLY_PATHS:
            return RedirectResponse(url="/dashboard", status_code=303)

        return await call_next(request)
