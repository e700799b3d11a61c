"""Idempotent Alembic operations that check the catalog before issuing DDL.

Migrations may run against databases where a table or index was created by hand
or by a partially applied earlier run, so every create/drop is skipped when the
object is already in the target state.
"""

from __future__ import annotations

from typing import Any

from alembic import op
from sqlalchemy import text

_DEFAULT_SCHEMA = "public"


def _relation_exists(name: str, *, kind: str, schema: str | None) -> bool:
  """Return True when a relation of the given pg_class relkind exists in the schema."""
  statement = text(
    """
    SELECT 1
    FROM pg_class c
    JOIN pg_namespace n ON n.oid = c.relnamespace
    WHERE n.nspname = :schema
      AND c.relname = :name
      AND c.relkind = :kind
    LIMIT 1
    """
  )
  result = op.get_bind().execute(statement, {"schema": schema or _DEFAULT_SCHEMA, "name": name, "kind": kind})
  return result.first() is not None


def table_exists(*, table_name: str, schema: str | None = None) -> bool:
  return _relation_exists(table_name, kind="r", schema=schema)


def index_exists(*, index_name: str, schema: str | None = None) -> bool:
  return _relation_exists(index_name, kind="i", schema=schema)


def guarded_create_table(table_name: str, *args: Any, **kwargs: Any) -> None:
  """Create a table unless it already exists."""
  if table_exists(table_name=table_name, schema=kwargs.get("schema")):
    return
  op.create_table(table_name, *args, **kwargs)


def guarded_drop_table(table_name: str, *args: Any, **kwargs: Any) -> None:
  """Drop a table if present."""
  if not table_exists(table_name=table_name, schema=kwargs.get("schema")):
    return
  op.drop_table(table_name, *args, **kwargs)


def guarded_create_index(index_name: str, table_name: str, *args: Any, **kwargs: Any) -> None:
  """Create an index when its table exists and the index does not."""
  schema = kwargs.get("schema")
  if not table_exists(table_name=table_name, schema=schema) or index_exists(index_name=index_name, schema=schema):
    return
  op.create_index(index_name, table_name, *args, **kwargs)


def guarded_drop_index(index_name: str, *args: Any, **kwargs: Any) -> None:
  """Drop an index if present."""
  if not index_exists(index_name=index_name, schema=kwargs.get("schema")):
    return
  op.drop_index(index_name, *args, **kwargs)
