"""
Script to export every automated query once
"""

import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from core.config import settings
from core.events import get_event_bus
from core.logging import setup_logging
from exporter.scheduler import run_automated_exports
from exporter.sinks.factory import dispose_external_engine

setup_logging()
logger = logging.getLogger(__name__)


async def run_exports():
    """Run the export pipeline for all automated queries"""

    engine = create_async_engine(
        settings.DATABASE_URL,
        echo=False,
    )

    AsyncSessionLocal = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    try:
        async with AsyncSessionLocal() as session:
            outcomes = await run_automated_exports(session, get_event_bus())

            if not outcomes:
                logger.warning("No automated queries configured. Nothing exported.")
                return

            for query_id, outcome in outcomes.items():
                if outcome is None:
                    logger.info(f"Query {query_id}: nothing exported")
                else:
                    logger.info(
                        f"Query {query_id}: "
                        f"Exported={len(outcome.successes)}, "
                        f"Errors={len(outcome.errors)}"
                    )

            logger.info("All export jobs completed")

    except Exception as e:
        logger.error(f"Export pipeline error: {str(e)}")
        sys.exit(1)
    finally:
        await dispose_external_engine()
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(run_exports())
