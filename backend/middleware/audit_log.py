"""
Audit Logging Middleware

One structured line per API request: the caller, the processor acted on,
the shift/deposit/rule ids named in the path, the outcome and the latency.
Shift starts and closes, deposit approvals and rule edits can then be
traced back to who triggered them.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("audit")

SKIP_PATHS = {"/health", "/health/ready", "/favicon.ico"}

# Path parameters worth recording; populated once routing has matched
SUBJECT_PARAMS = ("shift_id", "deposit_id", "rule_id", "motivation_id", "shift_type")

MUTATING_METHODS = {"POST", "PUT", "PATCH", "DELETE"}


def _acted_on_processor(request: Request, user_id) -> str | None:
    """Explicit ``processor_id`` in the path or query, else the caller themselves."""
    target = request.path_params.get("processor_id") or request.query_params.get("processor_id")
    if target:
        return str(target)
    return str(user_id) if user_id else None


def _subject(request: Request) -> dict[str, str]:
    return {
        name: str(request.path_params[name])
        for name in SUBJECT_PARAMS
        if name in request.path_params
    }


class AuditLogMiddleware(BaseHTTPMiddleware):
    """Logs every API request with its caller, subject and response status."""

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path

        if path in SKIP_PATHS:
            return await call_next(request)

        start = time.monotonic()
        response: Response | None = None
        error: str | None = None

        try:
            response = await call_next(request)
            return response
        except Exception as exc:
            error = str(exc)
            raise
        finally:
            latency_ms = (time.monotonic() - start) * 1000
            status_code = response.status_code if response else 500

            # Set by get_current_user once the token is verified
            user_id = getattr(request.state, "user_id", None)

            client_ip = request.headers.get(
                "x-forwarded-for", request.client.host if request.client else "unknown"
            )
            if "," in client_ip:
                client_ip = client_ip.split(",")[0].strip()

            log_data = {
                "method": request.method,
                "path": path,
                "status": status_code,
                "latency_ms": round(latency_ms, 2),
                "client_ip": client_ip,
                "user_id": str(user_id) if user_id else None,
                "user_role": getattr(request.state, "user_role", None),
                "processor_id": _acted_on_processor(request, user_id),
                "subject": _subject(request),
                "mutation": request.method in MUTATING_METHODS,
            }

            if error:
                log_data["error"] = error

            if status_code >= 500:
                logger.error("api_request", extra=log_data)
            elif status_code >= 400:
                logger.warning("api_request", extra=log_data)
            else:
                logger.info("api_request", extra=log_data)
