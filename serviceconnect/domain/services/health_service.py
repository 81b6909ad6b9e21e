"""
שירות בדיקת בריאות: בדיקת התלות היחידה: מסד הנתונים.

- liveness: האם התהליך חי (ללא בדיקת תלויות)
- readiness: האם ה-DB עונה
"""
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from serviceconnect.core.logging import get_logger
from serviceconnect.db.database import AsyncSessionLocal

logger = get_logger(__name__)

_STATUS_HEALTHY = "healthy"
_STATUS_DEGRADED = "degraded"

_CHECK_OK = "ok"

# ללא חשיפת פרטי תשתית
_ERROR_DB = "error: db_unavailable"


async def _check_db() -> str:
    """בדיקת חיבור למסד הנתונים באמצעות שאילתה קלה."""
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
        return _CHECK_OK
    except (SQLAlchemyError, OSError) as e:
        logger.warning("DB health check failed", extra_data={"error": str(e)})
        return _ERROR_DB


async def check_readiness() -> dict[str, Any]:
    """
    Readiness: status "healthy" when the DB answers, "degraded" otherwise.
    """
    checks = {"db": await _check_db()}

    all_ok = all(v == _CHECK_OK for v in checks.values())
    overall_status = _STATUS_HEALTHY if all_ok else _STATUS_DEGRADED

    if not all_ok:
        logger.warning("Readiness check degraded", extra_data=checks)

    return {"status": overall_status, **checks}
