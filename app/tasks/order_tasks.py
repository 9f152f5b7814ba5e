import logging

from app.tasks.celery_app import celery_app
from app.database import SessionLocal
from app.dependencies import build_stores
from app.exceptions import NotFoundError, StorageError
from app.receipts import write_receipt

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="generate_receipt", max_retries=3)
def generate_receipt(self, order_id: int) -> dict:
    """
    Background task writing the receipt of a committed order.

    The order may have been cancelled before the task runs; that is reported
    as a failed result, not retried.

    Args:
        order_id: ID of the order

    Returns:
        Dictionary with the outcome and the receipt path
    """
    logger.info(f"Generating receipt for Order #{order_id}")

    db = SessionLocal()

    try:
        _, orders = build_stores(db)
        order = orders.get(order_id)
        path = write_receipt(order)

        return {
            "status": "success",
            "order_id": order_id,
            "path": str(path),
        }

    except NotFoundError:
        logger.error(f"Order #{order_id} not found, no receipt written")
        return {"status": "failed", "order_id": order_id, "error": "Order not found"}

    except (StorageError, OSError) as e:
        logger.error(f"Error writing receipt for Order #{order_id}: {e}")
        raise self.retry(exc=e, countdown=60)

    finally:
        db.close()
