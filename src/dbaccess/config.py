"""Pool configuration.

PoolConfig is immutable once built. Validation and per-backend defaults
happen in __post_init__.
"""

from dataclasses import dataclass

from .types import DatabaseType

DEFAULT_PORTS = {DatabaseType.POSTGRES: 5432, DatabaseType.ORACLE: 1521}
DEFAULT_MAX_CONNECTIONS = {DatabaseType.POSTGRES: 20, DatabaseType.ORACLE: 10}


@dataclass(frozen=True)
class SslConfig:
    """TLS settings for the connection.

    Attributes:
        reject_unauthorized: Verify the server certificate against ``ca``
        ca: CA certificate file path
        cert: Client certificate file path
        key: Client private key file path
    """

    reject_unauthorized: bool = False
    ca: str | None = None
    cert: str | None = None
    key: str | None = None


@dataclass(frozen=True)
class PoolConfig:
    """Connection pool configuration.

    Attributes:
        db_type: Backing-store kind ('postgres' or 'oracle')
        host: Server host
        port: Server port (defaults per db_type)
        database: Database name (Postgres only)
        service_name: Service name (Oracle only)
        connect_string: Full connect string, overrides host/port/service_name (Oracle only)
        user: Login user
        password: Login password
        min_connections: Connections kept open when idle
        max_connections: Upper bound on concurrent connections
        increment: Connections opened at a time when growing (Oracle only)
        idle_timeout_ms: Idle connections older than this are closed
        connection_timeout_ms: Deadline for obtaining a connection
        query_timeout_ms: Default per-query deadline; None disables it
        ssl: TLS settings (Postgres only)
        application_name: Reported to the server for session identification
    """

    db_type: DatabaseType | str
    host: str = "localhost"
    port: int | None = None
    database: str | None = None
    service_name: str | None = None
    connect_string: str | None = None
    user: str | None = None
    password: str = ""
    min_connections: int = 1
    max_connections: int | None = None
    increment: int = 1
    idle_timeout_ms: int = 30000
    connection_timeout_ms: int = 2000
    query_timeout_ms: int | None = None
    ssl: SslConfig | None = None
    application_name: str = "dbaccess"

    def __post_init__(self):
        """Validate configuration and fill in per-backend defaults."""
        if isinstance(self.db_type, str) and not isinstance(self.db_type, DatabaseType):
            try:
                object.__setattr__(self, "db_type", DatabaseType(self.db_type.lower()))
            except ValueError as e:
                raise ValueError(
                    f"Unsupported database type: {self.db_type}. "
                    f"Must be one of: {', '.join(t.value for t in DatabaseType)}"
                ) from e

        if self.port is None:
            object.__setattr__(self, "port", DEFAULT_PORTS[self.db_type])
        if self.max_connections is None:
            object.__setattr__(self, "max_connections", DEFAULT_MAX_CONNECTIONS[self.db_type])

        if not self.user:
            raise ValueError("user is required")

        if self.db_type == DatabaseType.POSTGRES:
            if not all([self.host, self.database]):
                raise ValueError("host and database are required for PostgreSQL")
        elif self.db_type == DatabaseType.ORACLE:
            if not (self.service_name or self.connect_string):
                raise ValueError("Either service_name or connect_string is required for Oracle")

        if self.max_connections < 1:
            raise ValueError(f"max_connections must be at least 1, got {self.max_connections}")
        if self.min_connections < 0:
            raise ValueError(f"min_connections must be non-negative, got {self.min_connections}")
        if self.min_connections > self.max_connections:
            raise ValueError(
                f"min_connections ({self.min_connections}) exceeds "
                f"max_connections ({self.max_connections})"
            )
        if self.increment < 1:
            raise ValueError(f"increment must be at least 1, got {self.increment}")
        for name in ("idle_timeout_ms", "connection_timeout_ms"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if self.query_timeout_ms is not None and self.query_timeout_ms <= 0:
            raise ValueError(f"query_timeout_ms must be positive, got {self.query_timeout_ms}")

    @property
    def dsn(self) -> str:
        """Oracle connect string, or a host:port/service_name easy-connect string."""
        if self.connect_string:
            return self.connect_string
        return f"{self.host}:{self.port}/{self.service_name}"

    @classmethod
    def from_env(cls, db_type: DatabaseType | str | None = None) -> "PoolConfig":
        """Build a configuration from environment variables.

        Args:
            db_type: Backing-store kind; read from the environment when None

        Returns:
            Validated configuration
        """
        from common.env import env

        kind = DatabaseType((db_type or env.database_type()).lower())

        if kind == DatabaseType.ORACLE:
            return cls(
                db_type=kind,
                host=env.oracle_host(),
                port=env.oracle_port(),
                service_name=env.oracle_service_name(),
                connect_string=env.oracle_connect_string(),
                user=env.oracle_user(),
                password=env.oracle_password(),
                min_connections=env.oracle_pool_min(),
                max_connections=env.oracle_pool_max(),
                increment=env.oracle_pool_increment(),
                idle_timeout_ms=env.oracle_pool_timeout() * 1000,
                query_timeout_ms=env.query_timeout_ms(),
            )

        ssl = None
        if env.postgres_ssl():
            ssl = SslConfig(
                reject_unauthorized=env.postgres_ssl_reject_unauthorized(),
                ca=env.postgres_ssl_ca(),
                cert=env.postgres_ssl_cert(),
                key=env.postgres_ssl_key(),
            )
        return cls(
            db_type=kind,
            host=env.postgres_host(),
            port=env.postgres_port(),
            database=env.postgres_database(),
            user=env.postgres_user(),
            password=env.postgres_password(),
            max_connections=env.postgres_pool_max(),
            idle_timeout_ms=env.postgres_idle_timeout_ms(),
            connection_timeout_ms=env.postgres_connection_timeout_ms(),
            query_timeout_ms=env.query_timeout_ms(),
            ssl=ssl,
        )
