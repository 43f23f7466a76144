import json
import logging

from sqlalchemy.orm import Session

from app.errors import ValidationError
from app.models import KVEntry, commit_or_raise
from app.services.time_utils import utcnow

logger = logging.getLogger(__name__)

NOTICE_KEY = "current_notice"
NOTICE_TYPES = ("info", "warning", "error", "success")
DEFAULT_ICON = "🔧"


def _default_notice() -> dict:
    return {
        "enabled": False,
        "type": "info",
        "icon": DEFAULT_ICON,
        "title": "Notice",
        "message": "",
        "updated_at": utcnow().isoformat(),
    }


def get_notice(db: Session) -> dict:
    entry = db.query(KVEntry).filter(KVEntry.key == NOTICE_KEY).first()
    if entry is None:
        return _default_notice()
    try:
        return json.loads(entry.value)
    except ValueError:
        logger.warning("Stored maintenance notice is not valid JSON, returning default")
        return _default_notice()


def set_notice(
    db: Session,
    enabled: bool,
    notice_type: str,
    title: str,
    message: str,
    icon: str | None = None,
) -> dict:
    if notice_type not in NOTICE_TYPES:
        raise ValidationError("Invalid notice type")
    if not title or not message:
        raise ValidationError("Title and message are required")

    notice = {
        "enabled": enabled,
        "type": notice_type,
        "icon": icon or DEFAULT_ICON,
        "title": title,
        "message": message,
        "updated_at": utcnow().isoformat(),
    }
    entry = db.query(KVEntry).filter(KVEntry.key == NOTICE_KEY).first()
    if entry is None:
        db.add(KVEntry(key=NOTICE_KEY, value=json.dumps(notice)))
    else:
        entry.value = json.dumps(notice)
    commit_or_raise(db)
    logger.info("Maintenance notice updated (enabled=%s, type=%s)", enabled, notice_type)
    return notice
