from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.models import get_db
from app.schemas.notices import Notice, NoticeResponse
from app.services import notices

router = APIRouter()


@router.get(
    "",
    response_model=NoticeResponse,
    summary="Current maintenance notice",
)
def current_notice(
    db: Annotated[Session, Depends(get_db)],
):
    return NoticeResponse(notice=Notice(**notices.get_notice(db)))
