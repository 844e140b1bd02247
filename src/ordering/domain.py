"""Ordering bounded context: orders, payment transactions and purchase relationships.

The Order, Transaction and PurchaseRelationship aggregates share this one
domain so that payment confirmation can write a transaction and advance
its order inside a single unit of work.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)

_SQL_PROVIDERS = {"sqlite": "sqlite", "postgresql": "postgresql", "postgres": "postgresql"}

_initialized = False


def provider_for(database_url: str | None) -> dict | None:
    """Protean database config for ``database_url``; None keeps the memory provider."""
    if not database_url:
        return None
    scheme = database_url.split(":", 1)[0].split("+", 1)[0]
    provider = _SQL_PROVIDERS.get(scheme)
    if provider is None:
        raise ValueError(f"Unsupported DATABASE_URL scheme: {scheme}")
    return {"provider": provider, "database_uri": database_url}


def init_domain(database_url: str | None = None) -> Domain:
    """Register every element with the ordering domain and initialize it once."""
    global _initialized
    if _initialized:
        return ordering

    # Elements outside the ordering package register on import
    import payments.transaction.repository  # noqa: F401
    import payments.transaction.transaction  # noqa: F401

    database = provider_for(database_url)
    if database is not None:
        ordering.config["databases"]["default"] = database

    ordering.init()
    _initialized = True
    logger.info("Ordering domain initialized", provider=(database or {}).get("provider", "memory"))
    return ordering
