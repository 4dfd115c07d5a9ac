"""Data-access adapters (in-memory and PostgREST)."""

from app.adapters.datastore.base import (
    AbstractDataStore,
    Embed,
    Query,
    QueryResult,
    Row,
    many,
    one,
)

__all__ = ["AbstractDataStore", "Embed", "Query", "QueryResult", "Row", "many", "one"]
