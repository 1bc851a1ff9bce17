"""
PostgreSQL DDL rendered from the mapping model.

Only CREATE/DROP ... IF [NOT] EXISTS statements are produced; evolving an
existing schema is left to the operator.
"""

from blogpost.database_operations import DatabaseOperations
from blogpost.db_context import DatabaseManager
from blogpost.log import get_logger
from blogpost.mapping import EntityMapping, MappingModel

logger = get_logger("schema")


def _column_definition(column) -> str:
    if column.identity:
        return f"{column.column} {column.sql_type} GENERATED BY DEFAULT AS IDENTITY"
    null_sql = "NULL" if column.nullable else "NOT NULL"
    return f"{column.column} {column.sql_type} {null_sql}"


def create_table_sql(mapping: EntityMapping, model: MappingModel) -> str:
    """Render CREATE TABLE for one mapping including its key constraints"""
    parts = [_column_definition(column) for column in mapping.columns.values()]

    _, primary_column = mapping.primary_key
    parts.append(f"CONSTRAINT pk_{mapping.table_name} PRIMARY KEY ({primary_column.column})")

    for foreign_key in mapping.foreign_keys:
        column = mapping.column_for(foreign_key.attribute).column
        principal = model.mapping_for(foreign_key.principal)
        _, principal_key = principal.primary_key
        parts.append(
            f"CONSTRAINT fk_{mapping.table_name}_{principal.table_name}_{column} "
            f"FOREIGN KEY ({column}) REFERENCES {principal.table_name} ({principal_key.column}) "
            f"ON DELETE {foreign_key.on_delete}"
        )

    return f"CREATE TABLE IF NOT EXISTS {mapping.table_name} ({', '.join(parts)})"


def create_index_sql(mapping: EntityMapping) -> list[str]:
    statements = []
    for foreign_key in mapping.foreign_keys:
        column = mapping.column_for(foreign_key.attribute).column
        statements.append(
            f"CREATE INDEX IF NOT EXISTS ix_{mapping.table_name}_{column} "
            f"ON {mapping.table_name} ({column})"
        )
    return statements


def create_schema_sql(model: MappingModel) -> list[str]:
    """All statements needed to create the schema, principals first"""
    statements: list[str] = []
    for mapping in model.insertion_order():
        statements.append(create_table_sql(mapping, model))
        statements.extend(create_index_sql(mapping))
    return statements


def drop_schema_sql(model: MappingModel) -> list[str]:
    """DROP statements, dependents first"""
    return [
        f"DROP TABLE IF EXISTS {mapping.table_name}"
        for mapping in reversed(model.insertion_order())
    ]


async def create_schema(model: MappingModel, db_name: str = "default") -> None:
    db_ops = DatabaseOperations()
    async with DatabaseManager.transaction(db_name):
        for statement in create_schema_sql(model):
            await db_ops.execute_query(statement, [])
    logger.info("Schema ready: %s", ", ".join(m.table_name for m in model.insertion_order()))


async def drop_schema(model: MappingModel, db_name: str = "default") -> None:
    db_ops = DatabaseOperations()
    logger.warning("Dropping tables %s", ", ".join(m.table_name for m in model.mappings()))
    async with DatabaseManager.transaction(db_name):
        for statement in drop_schema_sql(model):
            await db_ops.execute_query(statement, [])
