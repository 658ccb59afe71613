import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from errors import DatabaseConnectionError, SchemaMismatchError
from relations import verify_schema

logger = logging.getLogger("db")

class Database:
    """
    This holds the engine, and the engine is really the connection pool. I pass
    it around to the query functions instead of keeping it in a global, that way
    the tests can just hand in an in-memory sqlite engine and nothing else changes.
    """

    def __init__(self, engine):
        self.engine = engine
        self._Session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
        self.closed = False

    @contextmanager
    def session(self):
        if self.closed:
            raise DatabaseConnectionError("connection pool is closed")
        session = self._Session()
        try:
            yield session
        finally:
            session.close()

    def ping(self):
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def close(self):
        if self.closed:
            return
        self.engine.dispose()
        self.closed = True
        logger.info("Connection pool closed.")

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False

def make_engine(config):
    kwargs = {"echo": config.echo, "pool_pre_ping": True}
    # sqlite doesn't use QueuePool, so the sizing knobs only apply elsewhere
    if not config.is_sqlite:
        pool_size = config.pool_min or config.pool_max
        kwargs["pool_size"] = pool_size
        kwargs["max_overflow"] = config.pool_max - pool_size
    return create_engine(config.sqlalchemy_url, **kwargs)

def connect(config, verify=True) -> Database:
    """
    So this builds the pool, but we don't want to find out the database is down
    halfway through a report, so it does a SELECT 1 right away. Then (unless
    verify=False) it checks that the tables and columns we mapped are really there.
    Anything that goes wrong here comes out as a DatabaseConnectionError, or a
    SchemaMismatchError if the schema is the problem.
    """
    try:
        url = config.safe_url()
        logger.info("Connecting to %s (pool %d..%d)", url, config.pool_min, config.pool_max)
        engine = make_engine(config)
    except (SQLAlchemyError, ImportError) as e:
        raise DatabaseConnectionError(f"could not create engine: {e}") from e

    db = Database(engine)
    try:
        db.ping()
    except SQLAlchemyError as e:
        db.close()
        raise DatabaseConnectionError(f"could not connect to {url}: {e}") from e

    if verify:
        try:
            verify_schema(engine)
        except SchemaMismatchError:
            db.close()
            raise
        except SQLAlchemyError as e:
            db.close()
            raise DatabaseConnectionError(f"could not read the schema of {url}: {e}") from e
    logger.info("Connected to %s", url)
    return db

def close(db):
    db.close()
