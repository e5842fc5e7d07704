"""Parameterized ``UPDATE ... SET`` assembly from conditionally supplied fields.

Assignments are collected as ``(column, value)`` pairs in call order and rendered
as numbered bind parameters ``:p1 .. :pN``. The row key is always bound last,
so the positional order is ``[assignment values..., key]``:

    builder = UpdateBuilder(Incident.__table__, Incident.__table__.c.id)
    builder.set(Incident.__table__.c.status, "monitoring")
    builder.set(Incident.__table__.c.updated_at, utc_now())
    stmt = builder.build(incident_id)
    # UPDATE incidents SET status = :p1, updated_at = :p2 WHERE id = :p3
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Column, Table, bindparam, text
from sqlalchemy.sql.elements import TextClause

_PLAIN = "{column} = {param}"
_IF_NULL = "{column} = COALESCE({column}, {param})"


@dataclass
class _Assignment:
    column: Column
    value: Any
    template: str


@dataclass
class UpdateBuilder:
    table: Table
    key_column: Column
    _assignments: list[_Assignment] = field(default_factory=list)
    _key: Any = None
    _built: bool = False

    def set(self, column: Column, value: Any) -> "UpdateBuilder":
        """Assign ``value`` to ``column``."""
        return self._add(column, value, _PLAIN)

    def set_if_null(self, column: Column, value: Any) -> "UpdateBuilder":
        """Assign ``value`` only where ``column`` is currently NULL."""
        return self._add(column, value, _IF_NULL)

    def _add(self, column: Column, value: Any, template: str) -> "UpdateBuilder":
        if column.table is not self.table:
            raise ValueError(f"Column {column.name!r} does not belong to table {self.table.name!r}")
        if self._built:
            raise RuntimeError("UpdateBuilder already built")
        self._assignments.append(_Assignment(column, value, template))
        return self

    @property
    def is_empty(self) -> bool:
        return not self._assignments

    @property
    def sql(self) -> str:
        if self.is_empty:
            raise ValueError("UPDATE requires at least one assignment")
        clauses = [
            a.template.format(column=a.column.name, param=f":p{index}")
            for index, a in enumerate(self._assignments, start=1)
        ]
        key_index = len(self._assignments) + 1
        return (
            f"UPDATE {self.table.name} SET {', '.join(clauses)} "
            f"WHERE {self.key_column.name} = :p{key_index}"
        )

    @property
    def parameters(self) -> list[Any]:
        """Positional parameter values; the key is always last."""
        return [a.value for a in self._assignments] + [self._key]

    def build(self, key: Any) -> TextClause:
        """Render the statement with typed bind parameters, binding ``key`` last."""
        statement = self.sql
        self._key = key
        self._built = True

        columns = [a.column for a in self._assignments] + [self.key_column]
        binds = [
            bindparam(f"p{index}", value, type_=column.type)
            for index, (column, value) in enumerate(zip(columns, self.parameters), start=1)
        ]
        return text(statement).bindparams(*binds)
