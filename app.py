import argparse
import logging
import sys

from dateutil import parser as dateparser

import reports
from config import DatabaseConfig
from db import connect
from errors import NotFoundError, PagilaError
from models import Actor
from query import find_by_id

logger = logging.getLogger("app")

def parse_day(value):
    try:
        return dateparser.parse(value).date()
    except (ValueError, OverflowError) as e:
        raise argparse.ArgumentTypeError(f"not a date: {value!r}") from e

def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Run the example queries against a pagila database.")
    parser.add_argument("--url", help="SQLAlchemy database URL (default: built from the PAGILA_* env vars)")
    parser.add_argument("--actor-id", type=int, default=1)
    parser.add_argument("--release-year", type=int, default=2006)
    parser.add_argument("--film-below", type=int, default=500,
                        help="list inventory for films with an id below this")
    parser.add_argument("--today", type=parse_day,
                        help="date to use as 'today' in the overdue report (default: the database's)")
    parser.add_argument("--no-verify", action="store_true", help="skip checking the schema on connect")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)

def show(title, result):
    print(f"--- {title}")
    if isinstance(result, int):
        print(result)
        return
    for row in result:
        print(row.to_dict() if hasattr(row, "to_dict") else row)

def run(db, args):
    actor = find_by_id(db, Actor, args.actor_id)
    if actor is None:
        raise NotFoundError(f"actor {args.actor_id} does not exist")

    films = reports.actor_films(db, actor, args.release_year).all()
    films_count = reports.film_count(db)
    inventory = reports.inventory_below(db, args.film_below).all()
    overdue = reports.overdue_rentals(db, today=args.today).all()

    show(f"{actor.first_name} {actor.last_name}: longest films from {args.release_year}", films)
    show("films", films_count)
    show(f"inventory for films below {args.film_below}", inventory)
    show("overdue rentals", overdue)

def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        config = DatabaseConfig.from_env().with_overrides(url=args.url)
        db = connect(config, verify=not args.no_verify)
    except (PagilaError, ValueError):
        logger.exception("Could not connect, nothing was run.")
        return 1

    try:
        run(db, args)
    except Exception:
        logger.exception("Queries failed.")
        return 1
    finally:
        db.close()
    return 0

if __name__ == "__main__":
    sys.exit(main())
