from pymongo import ASCENDING, DESCENDING
from pymongo.errors import OperationFailure


def _normalize_key_pairs(keys):
    return [(k, v) for k, v in keys]


async def _create_index_safe(collection, keys, **kwargs):
    """
    Create index safely.
    If Mongo reports IndexOptionsConflict/IndexKeySpecsConflict for same key pattern,
    drop the conflicting index and recreate with desired options.
    """
    desired_key = _normalize_key_pairs(keys)
    desired_name = kwargs.get("name")
    try:
        await collection.create_index(keys, **kwargs)
        return
    except OperationFailure as e:
        if getattr(e, "code", None) not in {85, 86}:
            raise

        conflicting_names = []
        async for idx in collection.list_indexes():
            idx_key = _normalize_key_pairs(list(idx.get("key", {}).items()))
            if idx_key == desired_key:
                idx_name = idx.get("name")
                if idx_name and idx_name != desired_name:
                    conflicting_names.append(idx_name)

        for idx_name in conflicting_names:
            await collection.drop_index(idx_name)

        await collection.create_index(keys, **kwargs)


async def ensure_indexes(db):
    # Orders
    await _create_index_safe(
        db.orders,
        [("order_number", ASCENDING)],
        name="orders_order_number_unique_idx",
        unique=True,
    )
    await _create_index_safe(
        db.orders,
        [("status", ASCENDING), ("created_at", DESCENDING)],
        name="orders_status_created_at_idx",
    )
    await _create_index_safe(
        db.orders,
        [("shipping_company", ASCENDING), ("status", ASCENDING)],
        name="orders_company_status_idx",
    )

    # Wallet transactions: deterministic ids make a double posting fail here
    await _create_index_safe(
        db.wallet_transactions,
        [("id", ASCENDING)],
        name="wallet_transactions_id_unique_idx",
        unique=True,
    )
    await _create_index_safe(
        db.wallet_transactions,
        [("order_id", ASCENDING)],
        name="wallet_transactions_order_idx",
        sparse=True,
    )
    await _create_index_safe(
        db.wallet_transactions,
        [("category", ASCENDING), ("created_at", DESCENDING)],
        name="wallet_transactions_category_created_at_idx",
    )

    # Timeline
    await _create_index_safe(
        db.order_timeline,
        [("order_id", ASCENDING), ("created_at", ASCENDING)],
        name="order_timeline_order_created_at_idx",
    )

    # Audit
    await _create_index_safe(
        db.audit_logs,
        [("created_at", DESCENDING)],
        name="audit_logs_created_at_idx",
    )
