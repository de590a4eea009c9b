from datetime import datetime


async def record_order_event(
    db,
    *,
    order_id: str,
    event: str,
    actor_role: str = "merchant",
    metadata: dict | None = None,
):
    """
    Single source of truth for order timeline events.
    """

    doc = {
        "order_id": order_id,
        "event": event,
        "actor_role": actor_role,
        "metadata": metadata or {},
        "created_at": datetime.utcnow(),
    }

    await db.order_timeline.insert_one(doc)
