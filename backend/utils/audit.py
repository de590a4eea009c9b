from datetime import datetime

async def log_audit(
    db,
    action: str,
    actor_role: str = "merchant",
    metadata: dict | None = None
):
    await db.audit_logs.insert_one({
        "actor_role": actor_role,
        "action": action,
        "metadata": metadata or {},
        "created_at": datetime.utcnow()
    })
