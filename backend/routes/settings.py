from fastapi import APIRouter, Depends

from database import get_db
from models.settings import FeeSettings
from utils.audit import log_audit
from utils.settings_service import get_fee_settings, save_fee_settings

router = APIRouter(prefix="/settings", tags=["Settings"])


@router.get("/fees")
async def read_fee_settings(db=Depends(get_db)):
    return await get_fee_settings(db)


@router.put("/fees")
async def replace_fee_settings(data: FeeSettings, db=Depends(get_db)):
    settings = await save_fee_settings(db, data)
    await log_audit(db, "FEE_SETTINGS_UPDATED", metadata={
        "companies": sorted(settings.company_fees.keys()),
    })
    return settings
