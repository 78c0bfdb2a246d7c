import logging

from django.conf import settings
from django.http import HttpRequest, JsonResponse
from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from core.http import client_ip, json_error, parse_json_body, parse_uuid, staff_json_required

from .models import AccessDevice
from .services import (
    DeviceOfflineError,
    decide_access,
    full_roster,
    pull_sync_items,
    record_heartbeat,
    trigger_relay,
)


logger = logging.getLogger(__name__)


def _get_device(raw_id):
    pk = parse_uuid(raw_id)
    if pk is None:
        return None
    return AccessDevice.objects.select_related("branch").filter(pk=pk).first()


@csrf_exempt
@require_POST
def access_event(request: HttpRequest):
    try:
        data = parse_json_body(request)
    except ValueError:
        return json_error("Malformed JSON body", 400)

    device_id = data.get("device_id")
    person_uuid = data.get("person_uuid")
    if not device_id or not person_uuid:
        return json_error("device_id and person_uuid are required", 400)

    device = _get_device(device_id)
    if device is None:
        return json_error("Device not found", 404)

    try:
        decision = decide_access(
            device,
            person_uuid,
            data.get("confidence"),
            photo_base64=data.get("photo_base64"),
            timestamp=data.get("timestamp"),
        )
    except Exception:
        logger.exception("Access event failed for device %s", device.pk)
        return json_error("Internal server error", 500)

    return JsonResponse(decision.as_payload())


@csrf_exempt
@require_POST
def heartbeat(request: HttpRequest):
    try:
        data = parse_json_body(request)
    except ValueError:
        return json_error("Malformed JSON body", 400)

    if not data.get("device_id"):
        return json_error("device_id is required", 400)
    device = _get_device(data["device_id"])
    if device is None:
        return json_error("Device not found", 404)

    has_pending = record_heartbeat(
        device,
        ip_address=data.get("ip_address") or client_ip(request),
        firmware_version=data.get("firmware_version"),
        status=data.get("status"),
    )
    return JsonResponse({
        "success": True,
        "device_id": str(device.pk),
        "has_pending_syncs": has_pending,
        "server_time": timezone.now().isoformat(),
    })


@require_GET
def sync_data(request: HttpRequest):
    device_id = request.GET.get("device_id")
    if not device_id:
        return json_error("device_id query parameter is required", 400)
    device = _get_device(device_id)
    if device is None:
        return json_error("Device not found", 404)

    mode = (request.GET.get("mode") or "incremental").strip().lower()
    if mode == "full":
        items = full_roster(device)
    elif mode == "incremental":
        try:
            limit = int(request.GET.get("limit") or settings.DEVICE_SYNC_DEFAULT_LIMIT)
        except ValueError:
            return json_error("limit must be an integer", 400)
        items = pull_sync_items(device, max(1, min(limit, 500)))
    else:
        return json_error("mode must be full or incremental", 400)

    return JsonResponse({
        "device_id": str(device.pk),
        "mode": mode,
        "items": items,
        "count": len(items),
        "server_time": timezone.now().isoformat(),
    })


@require_POST
@staff_json_required
def trigger_relay_view(request: HttpRequest):
    try:
        data = parse_json_body(request)
    except ValueError:
        return json_error("Malformed JSON body", 400)

    if not data.get("device_id"):
        return json_error("device_id is required", 400)
    device = _get_device(data["device_id"])
    if device is None:
        return json_error("Device not found", 404)

    try:
        duration = trigger_relay(device, user=request.user, duration=data.get("duration"))
    except DeviceOfflineError:
        return json_error("Device is offline", 400, success=False)

    return JsonResponse({
        "success": True,
        "message": "Relay trigger command sent",
        "device_id": str(device.pk),
        "device_name": device.device_name,
        "duration": duration,
    })
