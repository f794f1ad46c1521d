from __future__ import annotations

from typing import Any, Iterable

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Identity,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    func,
    text,
)
from sqlalchemy.dialects import postgresql
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID
from sqlalchemy.schema import CreateIndex, CreateTable

metadata = MetaData()

tools = Table(
    "tools",
    metadata,
    Column("name", String(length=128), primary_key=True),
    Column("category", String(length=64), nullable=False),
    Column("endpoint", Text(), nullable=False),
    Column("fallback_tools", ARRAY(Text()), nullable=False, server_default=text("'{}'::text[]")),
    Column("priority", Integer(), nullable=False, server_default=text("100")),
    Column("is_active", Boolean(), nullable=False, server_default=text("true")),
    Column("description", Text(), nullable=True),
    Column("result_key", String(length=64), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)
Index("ix_tools_category_active", tools.c.category, tools.c.is_active)

system_logs = Table(
    "system_logs",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()")),
    Column("seq", BigInteger, Identity(always=False), nullable=False),
    Column("session_id", String(length=128), nullable=True),
    Column("type", String(length=16), nullable=False),
    Column("message", Text(), nullable=False),
    Column("tool_name", String(length=128), nullable=True),
    Column("backup_tool", String(length=128), nullable=True),
    Column("metadata", JSONB(astext_type=Text()), nullable=False, server_default=text("'{}'::jsonb")),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)
Index("ix_system_logs_created_at", system_logs.c.created_at, system_logs.c.seq)
Index("ix_system_logs_session_id", system_logs.c.session_id)


def schema_statements(tables: Iterable[Table]) -> list[str]:
    """Render idempotent Postgres DDL for ``tables`` and their indexes."""

    dialect = postgresql.dialect()
    statements: list[str] = []
    for table in tables:
        statements.append(str(CreateTable(table, if_not_exists=True).compile(dialect=dialect)).strip())
        for index in sorted(table.indexes, key=lambda item: item.name or ""):
            statements.append(str(CreateIndex(index, if_not_exists=True).compile(dialect=dialect)).strip())
    return statements


async def ensure_schema(pool: Any, *, tables: Iterable[Table]) -> None:
    async with pool.acquire() as connection:
        for statement in schema_statements(tables):
            await connection.execute(statement)


__all__ = ["ensure_schema", "metadata", "schema_statements", "system_logs", "tools"]
