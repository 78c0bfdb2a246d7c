import logging

import requests
from django.conf import settings
from django.utils import timezone
from django.utils.html import escape


logger = logging.getLogger(__name__)


def tg_send(text: str):
    if not getattr(settings, "TELEGRAM_NOTIFICATIONS", True):
        return

    token = getattr(settings, "TELEGRAM_BOT_TOKEN", "")
    chat_id = getattr(settings, "TELEGRAM_CHAT_ID", "")

    if not token or not chat_id:
        return

    url = f"https://api.telegram.org/bot{token}/sendMessage"
    payload = {
        "chat_id": chat_id,
        "text": text,
        "parse_mode": "HTML",
        "disable_web_page_preview": True,
    }

    try:
        requests.post(url, json=payload, timeout=5)
    except requests.RequestException:
        logger.warning("Telegram message was not sent due to a request error")


def occupancy_line(current: int, capacity):
    """
    Returns a line like: 👥 Booked: 3 / 10
    Shows only the current count when capacity is unknown.
    """
    if capacity in (None, "", 0):
        return f"👥 Booked: <b>{current}</b>"
    return f"👥 Booked: <b>{current} / {capacity}</b>"


def _fmt_user(user) -> str:
    if not user:
        return "—"
    full_name = ""
    if hasattr(user, "get_full_name"):
        full_name = (user.get_full_name() or "").strip()
    return escape(full_name or str(user) or "—")


def _fmt_member(member) -> str:
    if not member:
        return "—"
    return escape(f"{member.display_name} ({member.member_code})")


def notify_slot_booked(*, member, slot):
    tg_send(
        "✅ <b>Benefit slot booked</b>\n"
        f"Member: <b>{_fmt_member(member)}</b>\n"
        f"Benefit: <b>{escape(slot.get_benefit_type_display())}</b>\n"
        f"When: <b>{slot.slot_date:%d.%m.%Y} {slot.start_time:%H:%M}–{slot.end_time:%H:%M}</b>\n"
        f"Branch: <b>{escape(str(slot.branch))}</b>\n"
        f"{occupancy_line(slot.booked_count, slot.capacity)}"
    )


def notify_payment_captured(*, invoice, amount, gateway: str, payment_id: str):
    tg_send(
        "💳 <b>Online payment captured</b>\n"
        f"Member: <b>{_fmt_member(invoice.member)}</b>\n"
        f"Invoice: <b>{escape(invoice.invoice_number)}</b>\n"
        f"Amount: <b>{escape(str(amount))}</b>\n"
        f"Gateway: <b>{escape(gateway)}</b> ({escape(payment_id or '—')})"
    )


def notify_relay_triggered(*, device, user, duration: int):
    when = timezone.localtime(timezone=device.branch.tzinfo()).strftime("%d.%m.%Y %H:%M")
    tg_send(
        "🚪 <b>Door opened manually</b>\n"
        f"Device: <b>{escape(device.device_name or str(device.id))}</b>\n"
        f"Branch: <b>{escape(str(device.branch))}</b>\n"
        f"By: <b>{_fmt_user(user)}</b>\n"
        f"When: <b>{when}</b>, {duration}s"
    )
