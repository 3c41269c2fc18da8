"""
Schema bootstrap.

Creates the record and change-log tables and installs the trigger that
appends a change-log row for every insert, update and delete on
``cacheable_data``.
"""

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine

from .models import Base

logger = structlog.get_logger()

CHANGE_LOG_FUNCTION_SQL = """
CREATE OR REPLACE FUNCTION cache_invalidation_trigger()
RETURNS TRIGGER AS $$
BEGIN
    INSERT INTO cache_invalidation_log (operation, table_name, record_id, old_data, new_data)
    VALUES (
        TG_OP,
        TG_TABLE_NAME,
        CASE WHEN TG_OP = 'DELETE' THEN OLD.id::text ELSE NEW.id::text END,
        CASE WHEN TG_OP = 'INSERT' THEN NULL ELSE to_jsonb(OLD) END,
        CASE WHEN TG_OP = 'DELETE' THEN NULL ELSE to_jsonb(NEW) END
    );
    RETURN NULL;
END;
$$ LANGUAGE plpgsql
"""

DROP_TRIGGER_SQL = "DROP TRIGGER IF EXISTS cache_data_change_trigger ON cacheable_data"

CREATE_TRIGGER_SQL = """
CREATE TRIGGER cache_data_change_trigger
AFTER INSERT OR UPDATE OR DELETE ON cacheable_data
FOR EACH ROW EXECUTE FUNCTION cache_invalidation_trigger()
"""

# asyncpg runs one statement per call.
TRIGGER_STATEMENTS = (CHANGE_LOG_FUNCTION_SQL, DROP_TRIGGER_SQL, CREATE_TRIGGER_SQL)


async def bootstrap_schema(engine: AsyncEngine) -> None:
    """Create tables and the change-log trigger. Safe to run repeatedly."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        for statement in TRIGGER_STATEMENTS:
            await conn.exec_driver_sql(statement)

    logger.info(
        "Database schema ready",
        tables=sorted(Base.metadata.tables.keys()),
        trigger="cache_data_change_trigger",
    )
