"""Desktop notifications for Seheri/Iftar and the nightly log reminder."""

import datetime
import logging
import threading

try:
    from plyer import notification as plyer_notification
    _PLYER_AVAILABLE = True
except ImportError:
    _PLYER_AVAILABLE = False

logger = logging.getLogger(__name__)

APP_NAME = "Ramadan Tracker"
APP_ICON = ""  # Path to icon file; empty = default

# The "have you filled in today's log?" banner shows from here until midnight
NIGHTLY_REMINDER_TIME = datetime.time(22, 55)

REMINDER_MINUTES = (10, 5)


def _send_plyer(title: str, message: str, timeout: int = 10) -> None:
    """Send a desktop notification via plyer (cross-platform)."""
    if not _PLYER_AVAILABLE:
        return
    try:
        kwargs = dict(
            app_name=APP_NAME,
            title=title,
            message=message,
            timeout=timeout,
        )
        if APP_ICON:
            kwargs["app_icon"] = APP_ICON
        plyer_notification.notify(**kwargs)
    except Exception as exc:
        logger.debug("Desktop notification failed: %s", exc)


def notify_reminder(boundary_name: str, minutes: int, callback=None) -> None:
    """
    Notify that Seheri ends / Iftar starts in N minutes.
    Optionally calls callback(title, message), e.g. to show a GUI banner.
    """
    title = f"🌙 {boundary_name} — {minutes} minutes"
    message = f"{boundary_name} is in {minutes} minutes."
    _send_plyer(title, message, timeout=15)
    if callback:
        callback(title, message)


def notify_boundary(boundary_name: str, callback=None) -> None:
    """Notify that the boundary time has arrived."""
    title = f"🌙 {boundary_name} — Now"
    message = f"It is now time for {boundary_name}."
    _send_plyer(title, message, timeout=30)
    if callback:
        callback(title, message)


def notify_nightly(callback=None) -> None:
    title = "🔔 Daily log"
    message = "Have you completed today's record?"
    _send_plyer(title, message, timeout=30)
    if callback:
        callback(title, message)


def is_nightly_reminder_due(now: datetime.datetime) -> bool:
    """True from NIGHTLY_REMINDER_TIME until midnight."""
    return now.time() >= NIGHTLY_REMINDER_TIME


def schedule_reminders(
    boundary_name: str,
    seconds_until_boundary: int,
    gui_callback=None,
) -> list:
    """
    Schedule reminder notifications at 10 min and 5 min before the boundary,
    and an alert exactly at the boundary.

    Returns list of Timer objects so they can be cancelled if needed.
    """
    timers = []

    for remind_minutes in REMINDER_MINUTES:
        delay = seconds_until_boundary - remind_minutes * 60
        if delay > 0:
            t = threading.Timer(
                delay,
                notify_reminder,
                args=(boundary_name, remind_minutes, gui_callback),
            )
            t.daemon = True
            t.start()
            timers.append(t)

    if seconds_until_boundary > 0:
        t = threading.Timer(
            seconds_until_boundary,
            notify_boundary,
            args=(boundary_name, gui_callback),
        )
        t.daemon = True
        t.start()
        timers.append(t)

    return timers


def cancel_timers(timers: list) -> None:
    """Cancel every timer and empty the list in place."""
    for t in timers:
        t.cancel()
    timers.clear()
