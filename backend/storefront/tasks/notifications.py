# storefront/tasks/notifications.py
from celery import shared_task
import logging
from typing import Any, Dict, Optional

import storefront.worker  # noqa: F401  registers the Celery app before tasks bind
from storefront.core.utils import format_money

logger = logging.getLogger(__name__)

# Subject lines per offer event, delivered by the mail relay
OFFER_EVENT_SUBJECTS = {
    "submitted": "New offer on {title}",
    "countered": "Counter offer on {title}",
    "accepted": "Offer accepted on {title}",
    "rejected": "Offer declined on {title}",
    "auto_rejected": "{title} is no longer available",
}

def build_offer_notification(event: str, data: Dict[str, Any]) -> Dict[str, str]:
    """Render the subject/body pair sent to a party of an offer."""
    title = data.get("listing_title") or "your listing"
    currency = data.get("currency", "USD")
    subject = OFFER_EVENT_SUBJECTS.get(event, "Offer update on {title}").format(title=title)

    if event == "submitted":
        body = f"{data.get('buyer_name') or 'A buyer'} offered {format_money(data['amount'], currency)}."
    elif event == "countered":
        body = (
            f"The seller countered your offer of {format_money(data['amount'], currency)} "
            f"with {format_money(data['counter_amount'], currency)}."
        )
    elif event == "accepted":
        body = f"The offer was accepted at {format_money(data['amount'], currency)}."
        if data.get("is_buyer"):
            body += " The item is waiting in your cart."
    elif event == "auto_rejected":
        body = "Another offer was accepted for this item."
    else:
        body = "The offer was declined."

    if data.get("message"):
        body += f"\n\n{data['message']}"

    return {"subject": subject, "body": body}

@shared_task(bind=True, max_retries=5, name="storefront.tasks.notifications.send_offer_notification")
def send_offer_notification(self, recipient_id: str, event: str, data: Dict[str, Any]):
    """
    Send an offer event notification to one user.
    """
    try:
        notification = build_offer_notification(event, data)
        logger.info(
            f"Offer notification to {recipient_id} ({event}, offer {data.get('offer_id')}): "
            f"{notification['subject']}"
        )
        return notification
    except Exception as e:
        logger.error(f"Error sending offer notification: {str(e)}")
        retry_delay = 60 * (2 ** self.request.retries)
        raise self.retry(exc=e, countdown=retry_delay)

def notify_offer_event(recipient_id: Optional[str], event: str, data: Dict[str, Any]) -> None:
    """
    Queue a notification. The transition is already committed, so a broker
    outage is logged rather than failing the request.
    """
    if not recipient_id:
        return
    try:
        send_offer_notification.delay(recipient_id, event, data)
    except Exception as e:
        logger.error(f"Could not queue {event} notification for {recipient_id}: {e}")
