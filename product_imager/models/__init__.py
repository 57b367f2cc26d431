"""Pydantic models and SQLModel ORM entities used by the service."""

from .schemas import (  # noqa: F401
    CredentialSet,
    InputCategory,
    ItemError,
    ItemRecord,
    ItemStatus,
    OutputCategory,
    QueueSnapshot,
)
