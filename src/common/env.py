"""Environment configuration interface for dbaccess.

This module provides a clean interface for accessing environment variables,
centralizing all environment variable access in one place.
"""

import os

from dotenv import load_dotenv

# Load environment variables from .env file if it exists
load_dotenv()

# Deployment environments and the group each belongs to
ENV_GROUPS: dict[str, str] = {
    "D1": "dev",
    "D2": "dev",
    "D3": "dev",
    "T1": "test",
    "T2": "test",
    "T3": "test",
    "T4": "test",
    "T5": "test",
    "U1": "uat",
    "U2": "uat",
    "U3": "uat",
    "U4": "uat",
    "QD1": "onprem",
    "QD2": "onprem",
    "QD3": "onprem",
    "QD4": "onprem",
}


def _flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _optional_int(name: str) -> int | None:
    value = os.getenv(name)
    return int(value) if value else None


class Environment:
    """Interface for accessing environment configuration."""

    @staticmethod
    def app_env() -> str:
        """Get the deployment environment name (e.g. 'T1', 'QD2').

        Returns:
            Environment name, defaults to 'T1'
        """
        return os.getenv("APP_ENV", "T1").upper()

    @staticmethod
    def env_group() -> str:
        """Get the group of the current deployment environment.

        Returns:
            One of 'dev', 'test', 'uat', 'onprem'

        Raises:
            ValueError: If APP_ENV is not a known environment
        """
        name = Environment.app_env()
        try:
            return ENV_GROUPS[name]
        except KeyError:
            raise ValueError(
                f"Unknown environment: {name}. Valid environments: {', '.join(ENV_GROUPS)}"
            ) from None

    @staticmethod
    def is_onprem() -> bool:
        """Whether the current environment is an on-premise one."""
        return Environment.env_group() == "onprem"

    @staticmethod
    def database_type() -> str:
        """Get the database type (postgres or oracle).

        Returns:
            DATABASE_TYPE if set, otherwise 'oracle' for on-premise
            environments and 'postgres' everywhere else
        """
        explicit = os.getenv("DATABASE_TYPE")
        if explicit:
            return explicit
        return "oracle" if Environment.is_onprem() else "postgres"

    @staticmethod
    def query_timeout_ms() -> int | None:
        """Get the default per-query deadline in milliseconds, if any."""
        return _optional_int("DB_QUERY_TIMEOUT_MS")

    # PostgreSQL

    @staticmethod
    def postgres_host() -> str:
        return os.getenv("POSTGRES_HOST", "localhost")

    @staticmethod
    def postgres_port() -> int:
        return int(os.getenv("POSTGRES_PORT", "5432"))

    @staticmethod
    def postgres_database() -> str:
        return os.getenv("POSTGRES_DATABASE", "postgres")

    @staticmethod
    def postgres_user() -> str:
        return os.getenv("POSTGRES_USER", "postgres")

    @staticmethod
    def postgres_password() -> str:
        return os.getenv("PG_PASSWORD", "")

    @staticmethod
    def postgres_pool_max() -> int:
        """Get the PostgreSQL pool upper bound.

        Returns:
            Max connections, defaults to 20
        """
        return int(os.getenv("POSTGRES_POOL_MAX", "20"))

    @staticmethod
    def postgres_idle_timeout_ms() -> int:
        return int(os.getenv("POSTGRES_IDLE_TIMEOUT_MS", "30000"))

    @staticmethod
    def postgres_connection_timeout_ms() -> int:
        return int(os.getenv("POSTGRES_CONNECTION_TIMEOUT_MS", "2000"))

    @staticmethod
    def postgres_ssl() -> bool:
        return _flag("POSTGRES_SSL")

    @staticmethod
    def postgres_ssl_reject_unauthorized() -> bool:
        return _flag("POSTGRES_SSL_REJECT_UNAUTHORIZED")

    @staticmethod
    def postgres_ssl_ca() -> str | None:
        return os.getenv("POSTGRES_SSL_CA")

    @staticmethod
    def postgres_ssl_cert() -> str | None:
        return os.getenv("POSTGRES_SSL_CERT")

    @staticmethod
    def postgres_ssl_key() -> str | None:
        return os.getenv("POSTGRES_SSL_KEY")

    # Oracle

    @staticmethod
    def oracle_host() -> str:
        return os.getenv("ORACLE_HOST", "localhost")

    @staticmethod
    def oracle_port() -> int:
        return int(os.getenv("ORACLE_PORT", "1521"))

    @staticmethod
    def oracle_service_name() -> str:
        """Get the Oracle service name.

        Returns:
            Service name, defaults to 'XEPDB1'
        """
        return os.getenv("ORACLE_SERVICE_NAME", "XEPDB1")

    @staticmethod
    def oracle_connect_string() -> str | None:
        return os.getenv("ORACLE_CONNECT_STRING") or None

    @staticmethod
    def oracle_user() -> str:
        return os.getenv("ORACLE_USER", "system")

    @staticmethod
    def oracle_password() -> str:
        return os.getenv("ORACLE_PASSWORD", "")

    @staticmethod
    def oracle_pool_min() -> int:
        return int(os.getenv("ORACLE_POOL_MIN", "1"))

    @staticmethod
    def oracle_pool_max() -> int:
        return int(os.getenv("ORACLE_POOL_MAX", "10"))

    @staticmethod
    def oracle_pool_increment() -> int:
        return int(os.getenv("ORACLE_POOL_INCREMENT", "1"))

    @staticmethod
    def oracle_pool_timeout() -> int:
        """Get the Oracle idle-connection timeout.

        Returns:
            Timeout in seconds, defaults to 60
        """
        return int(os.getenv("ORACLE_POOL_TIMEOUT", "60"))


# Singleton instance for convenient access
env = Environment()
