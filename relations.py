"""
The relationships between the entities, written down once as plain data.

Every relation is a chain of "table.column" pairs going from the owner's
table to the target's table. Direct relations (has one / has many) are one
hop, the through relations go owner -> join table -> target. The query module
is the only thing that turns these into actual JOINs, which is how
join_related and related_query stay in sync with each other.

Everything is checked when it's registered (and optionally against the live
database with verify_schema), so a typo in a column name fails at startup and
not in the middle of a report.
"""

import enum
import logging
from dataclasses import dataclass

from sqlalchemy import inspect as sa_inspect

from errors import QueryError, SchemaMismatchError
from models import Actor, Address, BaseSource, Customer, Film, Inventory, Rental, Staff, Store

logger = logging.getLogger("relations")

class RelationKind(enum.Enum):
    HAS_ONE = "has_one"
    HAS_MANY = "has_many"
    MANY_TO_MANY = "many_to_many"
    HAS_ONE_THROUGH = "has_one_through"

    @property
    def uses_through(self) -> bool:
        return self in (RelationKind.MANY_TO_MANY, RelationKind.HAS_ONE_THROUGH)

@dataclass(frozen=True)
class JoinPair:
    local: str
    remote: str

@dataclass(frozen=True)
class Relation:
    name: str
    kind: RelationKind
    owner: type
    target: type
    join: tuple
    through: str | None = None

    @property
    def target_table(self) -> str:
        return self.target.__tablename__

    def refs(self):
        for pair in self.join:
            yield pair.local
            yield pair.remote

    def steps(self, metadata=BaseSource.metadata):
        """(table, onclause) for each JOIN needed to get from the owner to the target."""
        hops = [self.through, self.target_table] if self.through else [self.target_table]
        return [
            (metadata.tables[table], column_for(pair.local, metadata) == column_for(pair.remote, metadata))
            for table, pair in zip(hops, self.join)
        ]

_registry: dict = {}

def split_ref(ref):
    table, _, column = ref.partition(".")
    if not table or not column:
        raise SchemaMismatchError(f"{ref!r} should look like 'table.column'", missing=[ref])
    return table, column

def column_for(ref, metadata=BaseSource.metadata):
    table, column = split_ref(ref)
    if table not in metadata.tables or column not in metadata.tables[table].c:
        raise SchemaMismatchError(f"{ref} is not a mapped column", missing=[ref])
    return metadata.tables[table].c[column]

def register(owner, name, kind, target, *pairs, through=None):
    join = tuple(JoinPair(local, remote) for local, remote in pairs)
    rel = Relation(name=name, kind=kind, owner=owner, target=target, join=join, through=through)
    _check(rel)
    _registry.setdefault(owner, {})[name] = rel
    return rel

def _check(rel):
    where = f"{rel.owner.__name__}.{rel.name}"
    if rel.name in _registry.get(rel.owner, {}):
        raise SchemaMismatchError(f"{where} is registered twice")

    expected_hops = 2 if rel.kind.uses_through else 1
    if len(rel.join) != expected_hops:
        raise SchemaMismatchError(f"{where} is {rel.kind.value} and needs {expected_hops} join pair(s)")
    if rel.kind.uses_through != (rel.through is not None):
        raise SchemaMismatchError(f"{where}: only many-to-many style relations go through a join table")

    missing = []
    for ref in rel.refs():
        try:
            column_for(ref)
        except SchemaMismatchError:
            missing.append(ref)
    if missing:
        raise SchemaMismatchError(f"{where} joins on columns that don't exist: {', '.join(missing)}", missing)

    # the pairs have to actually chain owner -> (through) -> target
    path = [rel.owner.__tablename__]
    if rel.through:
        path.append(rel.through)
    path.append(rel.target_table)
    for pair, (left, right) in zip(rel.join, zip(path, path[1:])):
        if split_ref(pair.local)[0] != left or split_ref(pair.remote)[0] != right:
            raise SchemaMismatchError(
                f"{where}: {pair.local} = {pair.remote} doesn't join {left} to {right}"
            )

def relation(owner, name) -> Relation:
    try:
        return _registry[owner][name]
    except KeyError:
        raise QueryError(f"{owner.__name__} has no relation named {name!r}") from None

def relations_of(owner):
    return dict(_registry.get(owner, {}))

def all_relations():
    for by_name in _registry.values():
        yield from by_name.values()

def verify_schema(engine, metadata=BaseSource.metadata):
    """
    Compare what we mapped against what's really in the database. The schema
    isn't ours (no migrations here), so this is the only way to find out a
    column got renamed before a query blows up.
    """
    inspector = sa_inspect(engine)
    found = {}
    missing = []
    for table in metadata.sorted_tables:
        if not inspector.has_table(table.name):
            missing.append(table.name)
            continue
        found[table.name] = {col["name"] for col in inspector.get_columns(table.name)}
        missing.extend(f"{table.name}.{col.name}" for col in table.columns if col.name not in found[table.name])

    for rel in all_relations():
        for ref in rel.refs():
            table, column = split_ref(ref)
            if table in found and column not in found[table] and ref not in missing:
                missing.append(ref)

    if missing:
        raise SchemaMismatchError(f"database is missing: {', '.join(missing)}", missing)
    logger.info("Schema verified: %d tables, %d relations", len(found), sum(1 for _ in all_relations()))

register(Actor, "films", RelationKind.MANY_TO_MANY, Film,
         ("actor.actor_id", "film_actor.actor_id"),
         ("film_actor.film_id", "film.film_id"),
         through="film_actor")

register(Film, "actors", RelationKind.MANY_TO_MANY, Actor,
         ("film.film_id", "film_actor.film_id"),
         ("film_actor.actor_id", "actor.actor_id"),
         through="film_actor")
register(Film, "inventory", RelationKind.HAS_MANY, Inventory, ("film.film_id", "inventory.film_id"))

register(Customer, "rentals", RelationKind.HAS_MANY, Rental, ("customer.customer_id", "rental.customer_id"))
register(Customer, "address", RelationKind.HAS_ONE, Address, ("customer.address_id", "address.address_id"))
register(Customer, "store", RelationKind.HAS_ONE, Store, ("customer.store_id", "store.store_id"))

register(Rental, "customer", RelationKind.HAS_ONE, Customer, ("rental.customer_id", "customer.customer_id"))
register(Rental, "film", RelationKind.HAS_ONE_THROUGH, Film,
         ("rental.inventory_id", "inventory.inventory_id"),
         ("inventory.film_id", "film.film_id"),
         through="inventory")
register(Rental, "inventory", RelationKind.HAS_ONE, Inventory, ("rental.inventory_id", "inventory.inventory_id"))
register(Rental, "staff", RelationKind.HAS_ONE, Staff, ("rental.staff_id", "staff.staff_id"))

register(Inventory, "rentals", RelationKind.HAS_MANY, Rental, ("inventory.inventory_id", "rental.inventory_id"))
register(Inventory, "film", RelationKind.HAS_ONE, Film, ("inventory.film_id", "film.film_id"))
register(Inventory, "store", RelationKind.HAS_ONE, Store, ("inventory.store_id", "store.store_id"))

# stores own customers through customer.store_id, and rentals only through their staff
register(Store, "customers", RelationKind.HAS_MANY, Customer, ("store.store_id", "customer.store_id"))
register(Store, "address", RelationKind.HAS_ONE, Address, ("store.address_id", "address.address_id"))
register(Store, "staff", RelationKind.HAS_MANY, Staff, ("store.store_id", "staff.store_id"))
register(Store, "manager", RelationKind.HAS_ONE, Staff, ("store.manager_staff_id", "staff.staff_id"))
register(Store, "inventory", RelationKind.HAS_MANY, Inventory, ("store.store_id", "inventory.store_id"))

register(Staff, "store", RelationKind.HAS_ONE, Store, ("staff.store_id", "store.store_id"))
register(Staff, "address", RelationKind.HAS_ONE, Address, ("staff.address_id", "address.address_id"))
register(Staff, "rentals", RelationKind.HAS_MANY, Rental, ("staff.staff_id", "rental.staff_id"))
