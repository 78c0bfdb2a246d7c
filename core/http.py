import json
import uuid
from functools import wraps

from django.http import HttpRequest, JsonResponse


def json_error(message: str, status: int, **extra) -> JsonResponse:
    return JsonResponse({"error": message, **extra}, status=status)


def parse_json_body(request: HttpRequest) -> dict:
    """Decode a JSON object body. Raises ValueError for anything else."""
    try:
        data = json.loads(request.body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValueError("Malformed JSON body") from exc
    if not isinstance(data, dict):
        raise ValueError("JSON body must be an object")
    return data


def parse_uuid(raw) -> uuid.UUID | None:
    if raw is None:
        return None
    try:
        return uuid.UUID(str(raw).strip())
    except (TypeError, ValueError):
        return None


def client_ip(request: HttpRequest) -> str | None:
    xff = (request.META.get("HTTP_X_FORWARDED_FOR") or "").strip()
    if xff:
        first = xff.split(",")[0].strip()
        if first:
            return first
    real_ip = (request.META.get("HTTP_X_REAL_IP") or "").strip()
    if real_ip:
        return real_ip
    remote_addr = (request.META.get("REMOTE_ADDR") or "").strip()
    return remote_addr or None


def staff_json_required(view):
    """Like staff_member_required, but answers API callers with JSON 401/403."""

    @wraps(view)
    def wrapper(request, *args, **kwargs):
        user = request.user
        if not user.is_authenticated:
            return json_error("Unauthorized", 401)
        if not (user.is_active and user.is_staff):
            return json_error("Insufficient permissions", 403)
        return view(request, *args, **kwargs)

    return wrapper
