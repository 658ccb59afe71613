import logging
from datetime import datetime, time

from sqlalchemy import DateTime, func, literal

from models import Film, Inventory, Rental
from query import query, related_query
from sqlfuncs import add_days

logger = logging.getLogger("reports")

def overdue_rentals(db, limit=5, today=None):
    """
    DVDs that are still out and past their due date (rented on + the film's
    rental_duration in days), with who has them and their phone number so
    someone can call. Sorted by title.

    today=None compares against the database's CURRENT_DATE, pass a date to
    pin the clock.
    """
    if today is None:
        cutoff = func.current_date()
    else:
        cutoff = literal(datetime.combine(today, time.min), DateTime)
    due = add_days(Rental.__table__.c.rental_date, Film.__table__.c.rental_duration)

    logger.info("Running overdue rentals report (limit=%d, today=%s)", limit, today or "CURRENT_DATE")
    return (
        query(db, Rental)
        .select("customer.first_name", "customer.last_name", "address.phone", "film.title")
        .join_related("customer")
        .inner_join("address", "customer.address_id", "address.address_id")
        .inner_join("inventory", "rental.inventory_id", "inventory.inventory_id")
        .inner_join("film", "inventory.film_id", "film.film_id")
        .where("rental.return_date", None)
        .where(due, "<", cutoff)
        .order_by("film.title")
        .limit(limit)
    )

def actor_films(db, actor, release_year, limit=3):
    # longest first
    return (
        related_query(db, actor, "films")
        .where("release_year", release_year)
        .order_by("length", "desc")
        .limit(limit)
    )

def film_count(db) -> int:
    return query(db, Film).count()

def inventory_below(db, film_id, limit=5):
    return (
        query(db, Inventory)
        .where("film_id", "<", film_id)
        .order_by("film_id", "desc")
        .limit(limit)
    )
