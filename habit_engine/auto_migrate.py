"""
Automatic database migration system.
Compares SQLAlchemy models with the actual SQLite schema and adds missing
columns, e.g. the favorites and version columns on databases created before
those fields existed.
"""
import logging
from typing import Optional

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from habit_engine.database import engine as default_engine, Base
from habit_engine import models  # noqa: F401  Import to register all models

logger = logging.getLogger("habit_engine.migrations")


def sqlalchemy_type_to_sqlite(sa_type) -> str:
    """Convert SQLAlchemy type to SQLite type"""
    sa_type_upper = str(sa_type).upper()

    if 'INTEGER' in sa_type_upper or 'BIGINT' in sa_type_upper:
        return 'INTEGER'
    elif 'VARCHAR' in sa_type_upper or 'TEXT' in sa_type_upper or 'STRING' in sa_type_upper:
        return 'TEXT'
    elif 'FLOAT' in sa_type_upper or 'NUMERIC' in sa_type_upper or 'REAL' in sa_type_upper:
        return 'REAL'
    elif 'BOOLEAN' in sa_type_upper:
        return 'INTEGER'  # SQLite stores booleans as integers
    elif 'DATE' in sa_type_upper or 'TIME' in sa_type_upper:
        return 'TEXT'  # SQLite stores dates as text
    else:
        return 'TEXT'


def get_default_value(column) -> str:
    """Get default value for a column in SQL format"""
    default = column.default
    if default is None or not hasattr(default, 'arg'):
        return 'NULL'

    value = default.arg

    if callable(value):
        # Timestamp factories map to SQLite's clock
        if 'utcnow' in getattr(value, '__name__', '') or 'datetime' in str(value):
            return 'CURRENT_TIMESTAMP'
        return 'NULL'

    if isinstance(value, bool):
        return '1' if value else '0'
    elif isinstance(value, (int, float)):
        return str(value)
    elif isinstance(value, str):
        escaped = value.replace("'", "''")
        return f"'{escaped}'"
    return 'NULL'


def auto_migrate(bind: Optional[Engine] = None) -> int:
    """
    Add columns that exist on the models but not in the database.

    Tables that do not exist yet are skipped; create them with
    Base.metadata.create_all() first.

    Returns:
        Number of columns added
    """
    bind = bind or default_engine
    logger.info("Starting automatic schema migration...")

    inspector = inspect(bind)
    existing_tables = inspector.get_table_names()
    migrations_applied = 0

    with bind.begin() as conn:
        for table_name, table in Base.metadata.tables.items():
            if table_name not in existing_tables:
                logger.warning(f"Table '{table_name}' doesn't exist. Run Base.metadata.create_all() first.")
                continue

            existing_columns = {col["name"] for col in inspector.get_columns(table_name)}

            for column in table.columns:
                if column.name in existing_columns:
                    continue

                default_value = get_default_value(column)
                alter_sql = (
                    f"ALTER TABLE {table_name} ADD COLUMN {column.name} "
                    f"{sqlalchemy_type_to_sqlite(column.type)}"
                )
                backfill_sql = None
                if default_value == 'CURRENT_TIMESTAMP':
                    # SQLite only accepts constant defaults in ALTER TABLE, so fill existing rows after
                    backfill_sql = (
                        f"UPDATE {table_name} SET {column.name} = CURRENT_TIMESTAMP "
                        f"WHERE {column.name} IS NULL"
                    )
                elif default_value != 'NULL':
                    alter_sql += f" DEFAULT {default_value}"
                    # SQLite requires a default for NOT NULL columns in ALTER TABLE
                    if not column.nullable:
                        alter_sql += " NOT NULL"

                logger.info(f"Adding column '{column.name}' to table '{table_name}'")
                logger.debug(f"SQL: {alter_sql}")
                try:
                    conn.execute(text(alter_sql))
                    if backfill_sql:
                        conn.execute(text(backfill_sql))
                except SQLAlchemyError as e:
                    logger.error(f"Failed to add column {table_name}.{column.name}: {e}")
                    raise
                migrations_applied += 1

    if migrations_applied > 0:
        logger.info(f"Migration completed: {migrations_applied} column(s) added")
    else:
        logger.info("Schema is up to date - no migrations needed")

    return migrations_applied


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    auto_migrate()
