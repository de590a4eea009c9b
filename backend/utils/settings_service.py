from datetime import datetime

from config.constants import SETTINGS_DOC_ID
from models.settings import FeeSettings


async def get_fee_settings(db) -> FeeSettings:
    doc = await db.settings.find_one({"_id": SETTINGS_DOC_ID})
    if not doc:
        return FeeSettings()

    doc = dict(doc)
    doc.pop("_id", None)
    doc.pop("updated_at", None)
    return FeeSettings.model_validate(doc)


async def save_fee_settings(db, settings: FeeSettings) -> FeeSettings:
    doc = settings.model_dump(mode="json")
    doc["updated_at"] = datetime.utcnow()

    await db.settings.update_one(
        {"_id": SETTINGS_DOC_ID},
        {"$set": doc},
        upsert=True,
    )
    return settings
