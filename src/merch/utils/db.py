"""Relational schema helpers for the merch domain.

Only SQLAlchemy-backed providers have a schema to manage; the in-memory
provider used by default and in tests is skipped.
"""

from protean.domain import Domain
from sqlalchemy import create_engine

RELATIONAL_PROVIDERS = ("sqlite", "postgresql")


def _relational_providers(domain: Domain):
    for name, provider in domain.providers.items():
        if provider.conn_info["provider"] in RELATIONAL_PROVIDERS:
            yield name, provider


def _register_models(domain: Domain, provider_name: str) -> None:
    # Touching a repository's DAO registers its model with SQLAlchemy's metadata
    records = list(domain.registry.aggregates.values()) + list(domain.registry.entities.values())
    for record in records:
        if record.cls.meta_.provider == provider_name:
            domain.repository_for(record.cls)._dao  # noqa: B018


def setup_db(domain: Domain) -> list[str]:
    """Create tables for orders, shipments and creator ledgers.

    Returns the names of the providers whose schema was created.
    """
    created = []
    with domain.domain_context():
        for name, provider in _relational_providers(domain):
            _register_models(domain, name)
            provider._metadata.create_all(create_engine(provider.conn_info["database_uri"]))
            created.append(name)
    return created


def drop_db(domain: Domain) -> list[str]:
    """Drop every table created by ``setup_db``."""
    dropped = []
    with domain.domain_context():
        for name, provider in _relational_providers(domain):
            provider._metadata.drop_all(create_engine(provider.conn_info["database_uri"]))
            dropped.append(name)
    return dropped
