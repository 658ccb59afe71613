import os
from dataclasses import dataclass, replace

from sqlalchemy.engine import URL, make_url

DEFAULT_DRIVER = "postgresql+psycopg"

@dataclass(frozen=True)
class DatabaseConfig:
    database: str = "pagila"
    user: str = "pagila"
    password: str = "pagila"
    host: str = "localhost"
    port: int = 5432
    driver: str = DEFAULT_DRIVER
    pool_min: int = 2
    pool_max: int = 10
    # a full SQLAlchemy URL wins over the individual fields above
    url: str | None = None
    echo: bool = False

    def __post_init__(self):
        if self.pool_max < 1:
            raise ValueError(f"pool_max must be at least 1, got {self.pool_max}")
        if self.pool_min < 0:
            raise ValueError(f"pool_min must be >= 0, got {self.pool_min}")
        if self.pool_min > self.pool_max:
            raise ValueError(f"pool_min ({self.pool_min}) is bigger than pool_max ({self.pool_max})")

    @classmethod
    def from_env(cls, environ=None):
        """
        Same idea as keeping the URL in an env var instead of hardcoding it,
        except every piece can be set on its own (PAGILA_DB, PAGILA_USER...)
        or all at once with PAGILA_URL.
        """
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            database=env.get("PAGILA_DB", defaults.database),
            user=env.get("PAGILA_USER", defaults.user),
            password=env.get("PAGILA_PASSWORD", defaults.password),
            host=env.get("PAGILA_HOST", defaults.host),
            port=int(env.get("PAGILA_PORT", defaults.port)),
            driver=env.get("PAGILA_DRIVER", defaults.driver),
            pool_min=int(env.get("PAGILA_POOL_MIN", defaults.pool_min)),
            pool_max=int(env.get("PAGILA_POOL_MAX", defaults.pool_max)),
            url=env.get("PAGILA_URL") or None,
            echo=env.get("PAGILA_ECHO", "").lower() in ("1", "true", "yes"),
        )

    def with_overrides(self, **changes):
        changes = {k: v for k, v in changes.items() if v is not None}
        return replace(self, **changes)

    @property
    def sqlalchemy_url(self) -> URL:
        if self.url:
            return make_url(self.url)
        return URL.create(
            self.driver,
            username=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.database,
        )

    @property
    def is_sqlite(self) -> bool:
        return self.sqlalchemy_url.get_backend_name() == "sqlite"

    def safe_url(self) -> str:
        return self.sqlalchemy_url.render_as_string(hide_password=True)
