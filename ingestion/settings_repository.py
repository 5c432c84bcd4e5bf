"""
Read and write rows of the shared ``settings`` table
"""

from datetime import datetime
from typing import Dict, Optional
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.dialects.postgresql import insert
from models.setting import Setting
from schemas.fcc import ScheduleSettings
import logging

logger = logging.getLogger(__name__)

LAST_UPDATED_KEY = "fcc_last_updated"
SCHEDULE_PREFIX = "fcc_schedule_"

SCHEDULE_DESCRIPTIONS = {
    "enabled": "Enable automatic FCC database updates",
    "days_of_week": "Days of week for FCC updates (0=Sunday, 1=Monday, etc.)",
    "time_utc": "Time of day for FCC updates (UTC)",
    "data_type": "Type of FCC data to download (AM, EN, ALL)",
    "timezone": "Timezone for schedule display",
}


async def upsert_setting(
    db: AsyncSession,
    key: str,
    value: str,
    description: Optional[str] = None,
    commit: bool = True
) -> None:
    """Insert or update one setting (bound parameters only)"""
    stmt = insert(Setting).values(
        key=key,
        value=value,
        description=description,
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow(),
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["key"],
        set_={"value": stmt.excluded.value, "updated_at": func.now()},
    )
    await db.execute(stmt)
    if commit:
        await db.commit()


async def get_setting(db: AsyncSession, key: str) -> Optional[str]:
    result = await db.execute(select(Setting.value).where(Setting.key == key))
    return result.scalar_one_or_none()


async def get_settings(db: AsyncSession, prefix: str) -> Dict[str, Optional[str]]:
    """All settings whose key starts with prefix, keyed without the prefix"""
    result = await db.execute(
        select(Setting.key, Setting.value).where(Setting.key.startswith(prefix))
    )
    return {key[len(prefix):]: value for key, value in result.all()}


async def mark_last_updated(db: AsyncSession, when: Optional[datetime] = None) -> str:
    stamp = (when or datetime.utcnow()).isoformat()
    await upsert_setting(db, LAST_UPDATED_KEY, stamp, "Last FCC database update")
    return stamp


async def load_schedule_settings(db: AsyncSession) -> ScheduleSettings:
    """Schedule settings from the table, defaults for missing keys"""
    stored = await get_settings(db, SCHEDULE_PREFIX)
    values = {key: value for key, value in stored.items() if key in SCHEDULE_DESCRIPTIONS}
    return ScheduleSettings(**values)


async def save_schedule_settings(db: AsyncSession, schedule: ScheduleSettings) -> None:
    values = {
        "enabled": "true" if schedule.enabled else "false",
        "days_of_week": schedule.days_of_week,
        "time_utc": schedule.time_utc,
        "data_type": schedule.data_type.value,
        "timezone": schedule.timezone,
    }
    for name, value in values.items():
        await upsert_setting(
            db,
            f"{SCHEDULE_PREFIX}{name}",
            value,
            SCHEDULE_DESCRIPTIONS[name],
            commit=False,
        )
    await db.commit()
    logger.info(
        f"Saved FCC schedule: enabled={values['enabled']} days={values['days_of_week']} "
        f"time={values['time_utc']} data_type={values['data_type']}"
    )
