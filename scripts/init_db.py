import asyncio
import logging
import sys
import os

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.database import build_engine
from core.logging import setup_logging
from models.base import Base
# Import all models to ensure they are registered
from models.fcc_records import AmateurRecord, EntityRecord
from models.import_job import ImportJob
from models.setting import Setting

setup_logging()
logger = logging.getLogger(__name__)


async def init_database():
    logger.info("Connecting to database...")
    engine = build_engine(settings.DATABASE_URL)

    async with engine.begin() as conn:
        logger.info("Creating tables...")
        # Create all tables defined in models (existing tables are left alone)
        await conn.run_sync(Base.metadata.create_all)
        logger.info(
            "Tables ready: "
            + ", ".join(t.__tablename__ for t in (AmateurRecord, EntityRecord, ImportJob, Setting))
        )

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(init_database())
