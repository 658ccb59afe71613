from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from db import Database
from models import (
    Actor, Address, BaseSource, Customer, Film, FilmActor, Inventory, MPAARating, Rental, Staff, Store,
)

def load_rows(engine):
    Session = sessionmaker(bind=engine)
    sess = Session()
    sess.add_all([
        Address(address_id=1, address="47 MySakila Drive", district="Alberta", city_id=300, phone="111"),
        Address(address_id=2, address="28 MySQL Boulevard", district="QLD", city_id=576, phone="222"),
        Address(address_id=3, address="23 Workhaven Lane", district="Alberta", city_id=300, phone="333"),
        Store(store_id=1, manager_staff_id=1, address_id=3),
        Store(store_id=2, manager_staff_id=2, address_id=3),
        Staff(staff_id=1, first_name="Mike", last_name="Hillyer", address_id=3, store_id=1, username="Mike"),
        Staff(staff_id=2, first_name="Jon", last_name="Stephens", address_id=3, store_id=2, username="Jon"),
        Customer(customer_id=1, store_id=1, first_name="MARY", last_name="SMITH", address_id=1, active=1),
        Customer(customer_id=2, store_id=1, first_name="PATRICIA", last_name="JOHNSON", address_id=2, active=1),
    ])
    sess.add_all([
        Film(film_id=1, title="ACADEMY DINOSAUR", release_year=2006, length=86, rental_duration=6,
             rental_rate=0.99, rating=MPAARating.PG, special_features=["Deleted Scenes", "Behind the Scenes"]),
        Film(film_id=2, title="ACE GOLDFINGER", release_year=2006, length=48, rental_duration=3,
             rental_rate=4.99, rating=MPAARating.G, special_features=["Trailers"]),
        Film(film_id=3, title="ADAPTATION HOLES", release_year=2006, length=50, rental_duration=7,
             rental_rate=2.99, rating=MPAARating.NC_17),
        Film(film_id=4, title="AFFAIR PREJUDICE", release_year=2005, length=117, rental_duration=5,
             rental_rate=2.99, rating="G"),
        Film(film_id=5, title="AGENT TRUMAN", release_year=2006, length=169, rental_duration=3,
             rental_rate=2.99, rating="PG"),
        Film(film_id=6, title="ALONE TRIP", release_year=2006, length=86, rental_duration=3,
             rental_rate=0.99, rating="R"),
        Actor(actor_id=1, first_name="PENELOPE", last_name="GUINESS"),
        Actor(actor_id=2, first_name="NICK", last_name="WAHLBERG"),
        Actor(actor_id=3, first_name="ED", last_name="CHASE"),
    ])
    sess.add_all(
        [FilmActor(actor_id=1, film_id=f) for f in (1, 2, 3, 4, 5, 6)]
        + [FilmActor(actor_id=2, film_id=2)]
    )
    sess.add_all([
        Inventory(inventory_id=1, film_id=1, store_id=1),
        Inventory(inventory_id=2, film_id=2, store_id=1),
        Inventory(inventory_id=3, film_id=3, store_id=1),
        Inventory(inventory_id=4, film_id=4, store_id=2),
        Inventory(inventory_id=5, film_id=5, store_id=2),
        Inventory(inventory_id=6, film_id=1, store_id=2),
    ])
    sess.add_all([
        # still out, due 2024-05-07 -> overdue on 2024-06-01
        Rental(rental_id=1, rental_date=datetime(2024, 5, 1, 10, 0), inventory_id=1, customer_id=1,
               return_date=None, staff_id=1),
        # long overdue by the dates, but it came back
        Rental(rental_id=2, rental_date=datetime(2024, 5, 1, 10, 0), inventory_id=2, customer_id=2,
               return_date=datetime(2024, 5, 3, 9, 0), staff_id=1),
        # still out, due 2024-06-06 -> not overdue yet on 2024-06-01
        Rental(rental_id=3, rental_date=datetime(2024, 5, 30, 12, 0), inventory_id=3, customer_id=2,
               return_date=None, staff_id=2),
    ])
    sess.commit()
    sess.close()

def memory_engine():
    return create_engine("sqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False})

@pytest.fixture
def bare_engine():
    """No tables at all."""
    engine = memory_engine()
    yield engine
    engine.dispose()

@pytest.fixture
def engine():
    engine = memory_engine()
    BaseSource.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()

@pytest.fixture
def empty_db(engine):
    db = Database(engine)
    yield db
    db.close()

@pytest.fixture
def db(engine):
    load_rows(engine)
    db = Database(engine)
    yield db
    db.close()

@pytest.fixture
def sqlite_url(tmp_path):
    """A seeded sqlite file, for the things that want a URL instead of an engine."""
    url = f"sqlite:///{tmp_path / 'pagila.db'}"
    engine = create_engine(url)
    BaseSource.metadata.create_all(bind=engine)
    load_rows(engine)
    engine.dispose()
    return url
