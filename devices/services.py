"""
Access decisions for face-recognition terminals.

A terminal posts every recognition; the server answers OPEN or DENIED with
the LED colour and relay time, checks the person in when allowed, and
logs one access event per recognition whatever the outcome.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import validate_ipv46_address
from django.db import transaction
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from core.http import parse_uuid
from core.telegram_notify import notify_relay_triggered
from memberships.models import Member, MemberAttendance, Membership
from memberships.services import member_check_in, validate_member_checkin
from staff.models import Employee, StaffAttendance
from staff.services import staff_check_in

from .models import AccessDevice, BiometricSyncQueue, DeviceAccessEvent


logger = logging.getLogger(__name__)

OPEN = DeviceAccessEvent.Response.OPEN
DENIED = DeviceAccessEvent.Response.DENIED

DENIAL_MESSAGES = {
    "expired": "Membership Expired - See Reception",
    "frozen": "Membership Frozen",
    "no_membership": "No Active Plan",
}


class DeviceOfflineError(Exception):
    pass


@dataclass
class AccessDecision:
    action: str
    message: str
    led_color: str
    relay_delay: int
    person_name: str | None = None
    member_code: str | None = None
    plan_name: str | None = None
    days_remaining: int | None = None
    denial_reason: str = ""
    event: DeviceAccessEvent | None = field(default=None, repr=False)

    @property
    def granted(self) -> bool:
        return self.action == OPEN

    def as_payload(self) -> dict:
        data = asdict(self)
        data.pop("event", None)
        data.pop("denial_reason", None)
        return {k: v for k, v in data.items() if v is not None}


def relay_seconds(device: AccessDevice) -> int:
    return int(device.relay_delay or getattr(settings, "DEFAULT_RELAY_DELAY", 5) or 5)


def _open(device, message, **extra) -> AccessDecision:
    return AccessDecision(
        action=OPEN,
        message=message,
        led_color="GREEN",
        relay_delay=relay_seconds(device),
        **extra,
    )


def _denied(reason, message, **extra) -> AccessDecision:
    return AccessDecision(
        action=DENIED,
        message=message,
        led_color="RED",
        relay_delay=0,
        denial_reason=reason,
        **extra,
    )


def _photo_preview(photo_base64) -> str:
    # Photos are not stored; the event keeps a short preview for the live log.
    if not photo_base64:
        return ""
    return f"data:image/jpeg;base64,{str(photo_base64)[:100]}..."


def _event_time(device, timestamp):
    if timestamp:
        try:
            parsed = parse_datetime(str(timestamp))
        except ValueError:
            logger.warning("Device %s sent invalid timestamp %r", device.pk, timestamp)
            parsed = None
        if parsed is not None:
            if timezone.is_naive(parsed):
                parsed = timezone.make_aware(parsed, device.branch.tzinfo())
            return parsed
    return timezone.now()


def _confidence(raw):
    try:
        return float(raw)
    except (TypeError, ValueError):
        return None


def _decide_member(device, member: Member) -> AccessDecision:
    name = member.display_name
    who = {"person_name": name, "member_code": member.member_code}

    if member.branch_id != device.branch_id:
        return _denied("wrong_branch", "Wrong Branch", **who)

    validation = validate_member_checkin(member, device.branch)
    if validation.valid:
        result = member_check_in(member, device.branch, method=MemberAttendance.Method.BIOMETRIC)
        if not result.valid:
            validation = result
        else:
            return _open(
                device,
                f"Welcome, {name}!",
                plan_name=result.plan_name,
                days_remaining=result.days_remaining,
                **who,
            )

    if validation.reason == "already_checked_in":
        return _open(device, f"Welcome back, {name}!", **who)

    message = DENIAL_MESSAGES.get(validation.reason) or validation.message or "Please See Reception"
    return _denied(validation.reason or "unknown", message, **who)


def _decide_staff(device, employee: Employee) -> AccessDecision:
    name = employee.display_name
    if not employee.is_active:
        return _denied("inactive", "Account Inactive", person_name=name)
    if employee.branch_id != device.branch_id:
        return _denied("wrong_branch", "Wrong Branch", person_name=name)

    staff_check_in(employee, device.branch, method=StaffAttendance.Method.BIOMETRIC)
    return _open(device, f"Welcome, {name}!", person_name=name)


def decide_access(device: AccessDevice, person_uuid, confidence, photo_base64=None, timestamp=None) -> AccessDecision:
    """
    Resolve a recognition event into a door decision.

    The check-in and the event row are written in one transaction, so a
    failure in either leaves nothing behind and propagates to the caller.
    """
    pk = parse_uuid(person_uuid)
    event = {
        "device": device,
        "branch_id": device.branch_id,
        "event_type": DeviceAccessEvent.EventType.FACE_RECOGNIZED,
        "confidence_score": _confidence(confidence),
        "photo_url": _photo_preview(photo_base64),
        "processed_at": _event_time(device, timestamp),
    }

    with transaction.atomic():
        member = Member.objects.select_related("user", "branch").filter(pk=pk).first() if pk else None
        employee = None
        if member is None and pk:
            employee = Employee.objects.select_related("user").filter(pk=pk).first()

        if member is not None:
            event["member"] = member
            decision = _decide_member(device, member)
        elif employee is not None:
            event["staff"] = employee
            decision = _decide_staff(device, employee)
        else:
            decision = _denied("not_found", "Not Registered")

        decision.event = DeviceAccessEvent.objects.create(
            access_granted=decision.granted,
            denial_reason=decision.denial_reason,
            response_sent=decision.action,
            device_message=decision.message,
            **event,
        )

    logger.info(
        "Device %s person %s -> %s (%s)",
        device.pk, person_uuid, decision.action, decision.denial_reason or decision.message,
    )
    return decision


def record_heartbeat(device: AccessDevice, *, ip_address=None, firmware_version=None, status=None) -> bool:
    """Mark the device online. Returns whether sync items are waiting for it."""
    device.is_online = True
    device.last_heartbeat = timezone.now()
    fields = ["is_online", "last_heartbeat"]

    if ip_address:
        try:
            validate_ipv46_address(ip_address)
        except ValidationError:
            logger.warning("Device %s reported invalid IP %r", device.pk, ip_address)
        else:
            device.ip_address = ip_address
            fields.append("ip_address")
    if firmware_version:
        device.firmware_version = str(firmware_version)[:64]
        fields.append("firmware_version")
    if isinstance(status, dict):
        device.config = status
        fields.append("config")

    device.save(update_fields=fields)
    return BiometricSyncQueue.objects.filter(device=device, status=BiometricSyncQueue.Status.PENDING).exists()


def _touch_sync(device: AccessDevice) -> None:
    device.last_sync = timezone.now()
    device.save(update_fields=["last_sync"])


@transaction.atomic
def pull_sync_items(device: AccessDevice, limit: int) -> list[dict]:
    """Hand out the oldest pending queue items and mark them as syncing."""
    items = list(
        BiometricSyncQueue.objects
        .select_for_update()
        .filter(device=device, status=BiometricSyncQueue.Status.PENDING)
        .order_by("queued_at", "id")[:limit]
    )
    if items:
        BiometricSyncQueue.objects.filter(pk__in=[i.pk for i in items]).update(
            status=BiometricSyncQueue.Status.SYNCING
        )
    _touch_sync(device)
    return [
        {
            "id": item.pk,
            "person_uuid": str(item.person_uuid),
            "person_name": item.person_name,
            "photo_url": item.photo_url,
            "action": item.sync_type,
        }
        for item in items
    ]


def full_roster(device: AccessDevice) -> list[dict]:
    """Every member and employee of the device's branch with their access flag."""
    branch = device.branch
    today = branch.local_today()
    allowed_members = set(
        Membership.objects
        .filter(
            branch=branch,
            status=Membership.Status.ACTIVE,
            start_date__lte=today,
            end_date__gte=today,
        )
        .values_list("member_id", flat=True)
    )

    people = []
    for member in Member.objects.select_related("user").filter(branch=branch).order_by("member_code"):
        people.append({
            "person_uuid": str(member.pk),
            "person_name": member.display_name,
            "person_type": "member",
            "photo_url": member.photo_url,
            "wiegand_code": member.wiegand_code,
            "access_allowed": member.status == Member.Status.ACTIVE and member.pk in allowed_members,
        })
    for employee in Employee.objects.select_related("user").filter(branch=branch).order_by("employee_code"):
        people.append({
            "person_uuid": str(employee.pk),
            "person_name": employee.display_name,
            "person_type": "staff",
            "photo_url": employee.photo_url,
            "wiegand_code": employee.wiegand_code,
            "access_allowed": employee.is_active,
        })

    _touch_sync(device)
    return people


def trigger_relay(device: AccessDevice, *, user, duration=None) -> int:
    if not device.is_online:
        raise DeviceOfflineError("Device is offline")

    try:
        seconds = int(duration) if duration else relay_seconds(device)
    except (TypeError, ValueError):
        seconds = relay_seconds(device)

    DeviceAccessEvent.objects.create(
        device=device,
        branch_id=device.branch_id,
        event_type=DeviceAccessEvent.EventType.MANUAL_TRIGGER,
        access_granted=True,
        response_sent=OPEN,
        device_message="Manual trigger by staff",
    )
    logger.info("Relay of device %s opened by %s for %ss", device.pk, user, seconds)
    notify_relay_triggered(device=device, user=user, duration=seconds)
    return seconds


def queue_person_sync(person, action: str) -> list[BiometricSyncQueue]:
    """Queue ``person`` (a Member or an Employee) for every terminal of their branch."""
    if action not in BiometricSyncQueue.SyncType.values:
        raise ValueError(f"Unknown sync action: {action}")

    links = {"member": person} if isinstance(person, Member) else {"staff": person}
    items = [
        BiometricSyncQueue(
            device=device,
            person_uuid=person.pk,
            person_name=person.display_name,
            photo_url=person.photo_url or "",
            sync_type=action,
            **links,
        )
        for device in AccessDevice.objects.filter(branch_id=person.branch_id)
    ]
    return BiometricSyncQueue.objects.bulk_create(items)
