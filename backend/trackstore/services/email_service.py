"""Email service - transactional purchase e-mails via Resend"""
import html
import logging
import resend
from sqlalchemy.orm import Session

from trackstore.core.config import settings
from trackstore.models.purchase import Purchase
from trackstore.services.catalog_service import find_track

logger = logging.getLogger(__name__)


def _send_email(to: str, subject: str, body_html: str) -> bool:
    """
    Internal helper function to send email via Resend API.

    Args:
        to: Recipient email address
        subject: Email subject
        body_html: HTML email content

    Returns:
        bool: True on success, False on failure
    """
    if not settings.RESEND_API_KEY:
        logger.warning("RESEND_API_KEY is not set; skipping email")
        return False

    try:
        resend.api_key = settings.RESEND_API_KEY

        response = resend.Emails.send(
            {
                "from": settings.RESEND_FROM_EMAIL,
                "to": to,
                "subject": subject,
                "html": body_html,
            }
        )

        # Resend returns a dict with 'id' on success; some versions return an object
        email_id = None
        if isinstance(response, dict):
            email_id = response.get('id')
        elif hasattr(response, 'id'):
            email_id = response.id

        if email_id:
            logger.info(f"Email sent successfully to {to} (id: {email_id})")
            return True
        logger.error(f"Email send returned invalid response: {response} (type: {type(response)})")
        return False

    except Exception as exc:
        logger.error(f"Failed to send email to {to}: {exc}", exc_info=True)
        return False


def send_purchase_receipt(email: str, purchase: Purchase, db: Session) -> bool:
    """
    Send a purchase receipt pointing the buyer at their library.

    Args:
        email: Recipient email address (from the checkout session)
        purchase: The recorded purchase
        db: Database session (for the track title)

    Returns:
        bool: True on success, False on failure
    """
    track = find_track(purchase.track_id, db)
    if track is not None:
        label = f"{track.artist} - {track.title}"
    else:
        logger.warning(f"Purchase {purchase.id} references unknown track {purchase.track_id}")
        label = "your track"

    library_link = f"{settings.FRONTEND_URL.rstrip('/')}/library"
    amount = f"{purchase.amount_cents / 100:.2f} {purchase.currency.upper()}"

    body = f"""
    <p>Thank you for your purchase!</p>
    <p><strong>{html.escape(label)}</strong> ({amount}) is now in your library.</p>
    <p style="margin: 20px 0;">
      <a href="{library_link}" target="_blank" rel="noopener noreferrer">Go to your library to download it</a>
    </p>
    <p>Order reference: {html.escape(purchase.provider_transaction_id)}</p>
    """

    return _send_email(email, "Your music purchase", body)
