import enum
from datetime import date, datetime

from sqlalchemy import (
    JSON, Boolean, Column, Date, DateTime, Enum, ForeignKey, Integer, Numeric, SmallInteger, String, Text,
    event, inspect,
)
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import declarative_base, validates

from errors import ValidationError

MIN_RELEASE_YEAR = 1901
MAX_RELEASE_YEAR = 2155

class MPAARating(enum.Enum):
    G = "G"
    PG = "PG"
    PG_13 = "PG-13"
    R = "R"
    NC_17 = "NC-17"

# pagila stores special_features as text[]; anything that isn't postgres gets JSON
SpecialFeatures = ARRAY(Text).with_variant(JSON(), "sqlite", "mysql")

class _Row:
    """Every entity is a plain snapshot of one row, so printing it is just its columns."""

    def to_dict(self):
        out = {}
        for attr in inspect(self).mapper.column_attrs:
            value = getattr(self, attr.key)
            out[attr.key] = value.value if isinstance(value, enum.Enum) else value
        return out

    def __repr__(self):
        pk = inspect(self).identity or ()
        return f"<{type(self).__name__} {', '.join(str(v) for v in pk)}>"

BaseSource = declarative_base(cls=_Row)

def check_release_year(value):
    """
    Pagila keeps release_year as a YEAR domain, so anything outside 1901..2155 means the
    row is broken. I raise here instead of clamping it, a wrong year should be loud.
    """
    if value is None:
        return value
    if not MIN_RELEASE_YEAR <= value <= MAX_RELEASE_YEAR:
        raise ValidationError(
            f"release_year {value} is outside [{MIN_RELEASE_YEAR}, {MAX_RELEASE_YEAR}]"
        )
    return value

def coerce_rating(value):
    if value is None or isinstance(value, MPAARating):
        return value
    try:
        return MPAARating(value)
    except ValueError:
        raise ValidationError(f"{value!r} is not an MPAA rating") from None

class Film(BaseSource):
    __tablename__ = "film"
    film_id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    release_year = Column(Integer)
    rental_duration = Column(SmallInteger, nullable=False, default=3)
    rental_rate = Column(Numeric(4, 2), nullable=False, default=4.99)
    length = Column(SmallInteger)
    rating = Column(
        Enum(MPAARating, name="mpaa_rating", values_callable=lambda e: [m.value for m in e]),
        default=MPAARating.G,
    )
    special_features = Column(SpecialFeatures)
    last_update = Column(DateTime, nullable=False, default=datetime.now)

    @validates("release_year")
    def _validate_release_year(self, key, value):
        return check_release_year(value)

    @validates("rating")
    def _validate_rating(self, key, value):
        return coerce_rating(value)

@event.listens_for(Film, "load")
def _validate_loaded_film(target, context):
    # validators only run on assignment, rows coming back from the db skip them
    check_release_year(target.release_year)

class Actor(BaseSource):
    __tablename__ = "actor"
    actor_id = Column(Integer, primary_key=True)
    first_name = Column(String(45), nullable=False)
    last_name = Column(String(45), nullable=False)
    last_update = Column(DateTime, nullable=False, default=datetime.now)

class FilmActor(BaseSource):
    __tablename__ = "film_actor"
    actor_id = Column(Integer, ForeignKey("actor.actor_id"), primary_key=True)
    film_id = Column(Integer, ForeignKey("film.film_id"), primary_key=True)
    last_update = Column(DateTime, nullable=False, default=datetime.now)

class Address(BaseSource):
    __tablename__ = "address"
    address_id = Column(Integer, primary_key=True)
    address = Column(String(50), nullable=False)
    address2 = Column(String(50))
    district = Column(String(20), nullable=False)
    # city isn't mapped, so no ForeignKey here
    city_id = Column(SmallInteger, nullable=False)
    postal_code = Column(String(10))
    phone = Column(String(20), nullable=False)
    last_update = Column(DateTime, nullable=False, default=datetime.now)

class Store(BaseSource):
    __tablename__ = "store"
    store_id = Column(Integer, primary_key=True)
    # staff.store_id already points back at store, a FK both ways would be a cycle
    manager_staff_id = Column(SmallInteger, nullable=False)
    address_id = Column(SmallInteger, ForeignKey("address.address_id"), nullable=False)
    last_update = Column(DateTime, nullable=False, default=datetime.now)

class Staff(BaseSource):
    __tablename__ = "staff"
    staff_id = Column(Integer, primary_key=True)
    first_name = Column(String(45), nullable=False)
    last_name = Column(String(45), nullable=False)
    address_id = Column(SmallInteger, ForeignKey("address.address_id"), nullable=False)
    email = Column(String(50))
    store_id = Column(SmallInteger, ForeignKey("store.store_id"), nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    username = Column(String(16), nullable=False)
    last_update = Column(DateTime, nullable=False, default=datetime.now)

class Customer(BaseSource):
    __tablename__ = "customer"
    customer_id = Column(Integer, primary_key=True)
    store_id = Column(SmallInteger, ForeignKey("store.store_id"), nullable=False)
    first_name = Column(String(45), nullable=False)
    last_name = Column(String(45), nullable=False)
    email = Column(String(50))
    address_id = Column(SmallInteger, ForeignKey("address.address_id"), nullable=False)
    activebool = Column(Boolean, nullable=False, default=True)
    create_date = Column(Date, nullable=False, default=date.today)
    last_update = Column(DateTime, default=datetime.now)
    # legacy 0/1 copy of activebool that pagila still carries around
    active = Column(Integer)

class Inventory(BaseSource):
    __tablename__ = "inventory"
    inventory_id = Column(Integer, primary_key=True)
    film_id = Column(SmallInteger, ForeignKey("film.film_id"), nullable=False)
    store_id = Column(SmallInteger, ForeignKey("store.store_id"), nullable=False)
    last_update = Column(DateTime, nullable=False, default=datetime.now)

class Rental(BaseSource):
    __tablename__ = "rental"
    rental_id = Column(Integer, primary_key=True)
    rental_date = Column(DateTime, nullable=False)
    inventory_id = Column(Integer, ForeignKey("inventory.inventory_id"), nullable=False)
    customer_id = Column(SmallInteger, ForeignKey("customer.customer_id"), nullable=False)
    # NULL until the dvd comes back
    return_date = Column(DateTime)
    staff_id = Column(SmallInteger, ForeignKey("staff.staff_id"), nullable=False)
    last_update = Column(DateTime, nullable=False, default=datetime.now)
