from fastapi import APIRouter, Depends

from database import get_db
from utils.reports import get_financial_report
from utils.settings_service import get_fee_settings

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get("/financial")
async def financial_report(db=Depends(get_db)):
    settings = await get_fee_settings(db)
    return await get_financial_report(db, settings)
