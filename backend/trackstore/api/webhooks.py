"""Payment provider webhook route"""
import logging
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from trackstore.db.session import get_db
from trackstore.services.webhook_service import process_payment_webhook

router = APIRouter(prefix="/api/webhook", tags=["webhooks"])
logger = logging.getLogger(__name__)


@router.post("/payment")
async def payment_webhook(request: Request, db: Session = Depends(get_db)):
    """Handle Stripe webhook events

    The body is read as raw bytes: the signature covers the exact bytes sent,
    so it must not be parsed before verification. Processing commits to the
    database and may send a receipt e-mail, so it runs off the event loop.
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")

    try:
        return await run_in_threadpool(process_payment_webhook, payload, sig_header, db)
    except SQLAlchemyError as e:
        # Non-2xx makes Stripe redeliver; recording is idempotent
        logger.error(f"Storage error while processing payment webhook: {e}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "storage_error", "detail": "Failed to record payment"}
        )
