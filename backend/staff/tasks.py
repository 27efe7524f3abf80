from celery import shared_task
import logging

logger = logging.getLogger(__name__)


def run_session_cleanup():
    """
    Revoke expired staff sessions and deactivate expired customer sessions.

    Returns:
        dict: ``{"staff": n, "customer": m}``
    """
    from customers.services import CustomerSessionService
    from .sessions import StaffSessionService

    result = {
        "staff": StaffSessionService.cleanup_expired_sessions(),
        "customer": CustomerSessionService.cleanup_expired_sessions(),
    }
    logger.info(
        f"Session cleanup finished: {result['staff']} staff, {result['customer']} customer"
    )
    return result


@shared_task
def cleanup_expired_sessions():
    """
    Periodic session cleanup, scheduled by Celery Beat every
    SESSION_CLEANUP_INTERVAL_MINUTES.
    """
    try:
        return run_session_cleanup()
    except Exception as e:
        logger.error(f"Error cleaning up expired sessions: {e}", exc_info=True)
        raise
