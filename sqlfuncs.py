from sqlalchemy import DateTime
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.functions import FunctionElement

class add_days(FunctionElement):
    """timestamp + n days, where n can be another column (film.rental_duration)."""

    type = DateTime()
    name = "add_days"
    inherit_cache = True

@compiles(add_days)
def _add_days_sqlite(element, compiler, **kw):
    ts, days = element.clauses.clauses
    return "datetime(%s, '+' || %s || ' days')" % (compiler.process(ts, **kw), compiler.process(days, **kw))

@compiles(add_days, "postgresql")
def _add_days_postgresql(element, compiler, **kw):
    ts, days = element.clauses.clauses
    return "(%s + INTERVAL '1 day' * %s)" % (compiler.process(ts, **kw), compiler.process(days, **kw))

@compiles(add_days, "mysql")
def _add_days_mysql(element, compiler, **kw):
    ts, days = element.clauses.clauses
    return "DATE_ADD(%s, INTERVAL %s DAY)" % (compiler.process(ts, **kw), compiler.process(days, **kw))
