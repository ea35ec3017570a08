from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import logging

from app.dependencies import require_admin_key
from app.schemas import BirthdayListResponse, BirthdayOut
from app.application.formatters import sort_chronologically
from app.infrastructure.repositories import SqlAlchemyBirthdayRepository
from app.routers.webhook import _normalize_phone
from database.connection import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin_key)])


@router.get("/birthdays/{owner_id}", response_model=BirthdayListResponse)
async def list_owner_birthdays(owner_id: str, db: Session = Depends(get_db)):
    """Every saved birthday for one owner, in calendar order."""
    owner_id = _normalize_phone(owner_id)
    records = sort_chronologically(SqlAlchemyBirthdayRepository(db).list_all(owner_id))
    logger.info(f"[ADMIN] Listed {len(records)} birthdays for {owner_id}")
    return BirthdayListResponse(
        owner_id=owner_id,
        count=len(records),
        birthdays=[BirthdayOut.model_validate(r) for r in records],
    )
