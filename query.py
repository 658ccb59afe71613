"""
Composable queries over the mapped entities.

query(db, Film) hands back a QueryBuilder. Every builder method returns a new
builder with one more clause on it, nothing touches the database until
all() / first() / count() (or iterating it). Each of those runs in its own
session, so the entities that come back are detached snapshots and the pooled
connection goes back as soon as the query is done.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any

from sqlalchemy import false, func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.elements import ClauseElement

from errors import QueryError
from models import BaseSource
from relations import column_for, relation, split_ref

logger = logging.getLogger("query")

def _equals(col, value):
    return col.is_(None) if value is None else col == value

def _not_equals(col, value):
    return col.is_not(None) if value is None else col != value

_OPERATORS = {
    "=": _equals,
    "!=": _not_equals,
    "<>": _not_equals,
    "<": lambda col, value: col < value,
    "<=": lambda col, value: col <= value,
    ">": lambda col, value: col > value,
    ">=": lambda col, value: col >= value,
    "like": lambda col, value: col.like(value),
    "ilike": lambda col, value: col.ilike(value),
    "in": lambda col, value: col.in_(value),
    "not in": lambda col, value: col.not_in(value),
    "is": lambda col, value: col.is_(value),
    "is not": lambda col, value: col.is_not(value),
}

_MISSING = object()

@dataclass(frozen=True, eq=False)
class QueryBuilder:
    db: Any = field(repr=False)
    entity: type
    columns: tuple = ()
    joins: tuple = ()
    criteria: tuple = ()
    ordering: tuple = ()
    row_limit: int | None = None
    row_offset: int | None = None
    # relation name -> table name, for "films.title" style references after join_related
    aliases: tuple = ()

    def _table(self, name):
        name = dict(self.aliases).get(name, name)
        table = BaseSource.metadata.tables.get(name)
        if table is None:
            raise QueryError(f"unknown table {name!r}")
        return table

    def _column(self, ref):
        if isinstance(ref, ClauseElement):
            return ref
        if hasattr(ref, "__clause_element__"):
            # Film.title and friends
            return ref.__clause_element__()
        table_name, _, column_name = ref.rpartition(".")
        table = self._table(table_name) if table_name else self.entity.__table__
        if column_name not in table.c:
            raise QueryError(f"unknown column {ref!r} on {table.name}")
        return table.c[column_name]

    def where(self, column, op, value=_MISSING):
        """where("release_year", 2006) or where("film_id", "<", 500)"""
        if value is _MISSING:
            op, value = "=", op
        build = _OPERATORS.get(op.lower()) if isinstance(op, str) else None
        if build is None:
            raise QueryError(f"unsupported operator {op!r}")
        return replace(self, criteria=self.criteria + (build(self._column(column), value),))

    def and_where_raw(self, expression):
        # literal SQL goes in as-is, never build this from user input
        return replace(self, criteria=self.criteria + (text(expression),))

    def order_by(self, column, direction="asc"):
        direction = direction.lower()
        if direction not in ("asc", "desc"):
            raise QueryError(f"order direction must be 'asc' or 'desc', got {direction!r}")
        return replace(self, ordering=self.ordering + ((self._column(column), direction),))

    def limit(self, n):
        if n < 0:
            raise QueryError(f"limit can't be negative ({n})")
        return replace(self, row_limit=n)

    def offset(self, n):
        if n < 0:
            raise QueryError(f"offset can't be negative ({n})")
        return replace(self, row_offset=n)

    def select(self, *columns):
        return replace(self, columns=self.columns + tuple(self._column(c) for c in columns))

    def join_related(self, name):
        rel = relation(self.entity, name)
        return replace(
            self,
            joins=self.joins + tuple(rel.steps()),
            aliases=self.aliases + ((name, rel.target_table),),
        )

    def inner_join(self, table, left_column, right_column):
        onclause = self._column(left_column) == self._column(right_column)
        return replace(self, joins=self.joins + ((self._table(table), onclause),))

    def related_to(self, rel, instance):
        """Narrow the query down to whatever `instance` points at through `rel`."""
        first = rel.join[0]
        value = getattr(instance, split_ref(first.local)[1])
        # a NULL foreign key means nothing is related, not "match the NULLs"
        criterion = false() if value is None else column_for(first.remote) == value
        builder = replace(self, criteria=self.criteria + (criterion,))
        if rel.through is None:
            return builder
        second = rel.join[1]
        through = BaseSource.metadata.tables[rel.through]
        onclause = column_for(second.local) == column_for(second.remote)
        return replace(builder, joins=builder.joins + ((through, onclause),))

    def _order_clauses(self):
        if not self.ordering:
            return []
        clauses = [col.desc() if direction == "desc" else col.asc() for col, direction in self.ordering]
        # primary key ascending breaks ties so limit() after order_by() is stable
        ordered = {id(col) for col, _ in self.ordering}
        clauses.extend(pk.asc() for pk in self.entity.__table__.primary_key.columns if id(pk) not in ordered)
        return clauses

    def statement(self):
        from_ = self.entity.__table__
        for table, onclause in self.joins:
            from_ = from_.join(table, onclause)

        stmt = select(*self.columns) if self.columns else select(self.entity)
        stmt = stmt.select_from(from_)
        if self.criteria:
            stmt = stmt.where(*self.criteria)
        order = self._order_clauses()
        if order:
            stmt = stmt.order_by(*order)
        if self.row_limit is not None:
            stmt = stmt.limit(self.row_limit)
        if self.row_offset is not None:
            stmt = stmt.offset(self.row_offset)
        return stmt

    def _run(self, stmt, fetch):
        logger.debug("SQL: %s", stmt)
        with self.db.session() as session:
            try:
                return fetch(session, stmt)
            except SQLAlchemyError as e:
                raise QueryError(f"query on {self.entity.__tablename__} failed: {e}", orig=e) from e

    def all(self):
        if self.columns:
            return self._run(self.statement(), lambda s, stmt: [dict(row) for row in s.execute(stmt).mappings()])
        return self._run(self.statement(), lambda s, stmt: list(s.scalars(stmt)))

    def first(self):
        # limit(0).first() has to stay empty, so never raise an existing limit
        n = 1 if self.row_limit is None else min(self.row_limit, 1)
        rows = self.limit(n).all()
        return rows[0] if rows else None

    def count(self) -> int:
        counted = replace(self, columns=(), ordering=()).statement().subquery()
        return self._run(select(func.count()).select_from(counted), lambda s, stmt: s.scalar(stmt))

    def __iter__(self):
        return iter(self.all())

def query(db, entity) -> QueryBuilder:
    return QueryBuilder(db=db, entity=entity)

def related_query(db, instance, name) -> QueryBuilder:
    """
    Start from a loaded row and query the rows it's related to,
    e.g. related_query(db, actor, "films").
    """
    rel = relation(type(instance), name)
    return query(db, rel.target).related_to(rel, instance)

def find_by_id(db, entity, id):
    """
    Looks up one row by primary key. If it's not there we just get None back,
    a missing row isn't an error, the caller decides what that means.
    """
    with db.session() as session:
        try:
            return session.get(entity, id)
        except SQLAlchemyError as e:
            raise QueryError(f"find_by_id({entity.__name__}, {id!r}) failed: {e}", orig=e) from e
