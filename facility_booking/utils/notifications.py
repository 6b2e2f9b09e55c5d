import logging

logger = logging.getLogger(__name__)


def send_reservation_status_email(
    to_email: str,
    name: str,
    reservation_id: int,
    resource_names: list[str],
    status: str,
    note: str | None = None,
) -> bool:
    """
    Delivery is owned by the notification service; the status change is logged here.
    """
    logger.info(
        f"[RESERVATION EMAIL] To={to_email} | Name={name} | Reservation#{reservation_id} "
        f"| Resources={', '.join(resource_names)} | Status={status}"
        + (f" | Note={note}" if note else "")
    )
    return True


def notify_admins_pending(reservation_id: int, resource_names: list[str]) -> bool:
    logger.info(
        f"[ADMIN DIGEST] Reservation#{reservation_id} awaiting approval | "
        f"Resources={', '.join(resource_names)}"
    )
    return True
