"""Supabase client singleton for database and storage operations."""

from functools import lru_cache
from typing import Any

from supabase import Client, create_client

from src.core.config import get_settings


@lru_cache
def get_supabase_client() -> Client:
    """Get cached Supabase client singleton.

    Uses the secret key, which bypasses RLS at the PostgREST level. Every
    caller must have verified the actor's rights on the rows it touches
    before using this client.

    Returns:
        Client: Supabase client instance.
    """
    settings = get_settings()
    return create_client(
        settings.supabase_url,
        settings.supabase_secret_key,
    )


async def check_database_connection() -> dict[str, Any]:
    """Check if database connection is healthy.

    Performs a cheap query against the orders table.

    Returns:
        dict: Connection status with 'healthy' boolean and optional 'error' message.
    """
    try:
        client = get_supabase_client()
        client.table("orders").select("id").limit(1).execute()
        return {"healthy": True}
    except Exception as e:
        return {"healthy": False, "error": str(e)}


async def check_storage_connection() -> dict[str, Any]:
    """Check that the artwork bucket is reachable.

    Returns:
        dict: Connection status with 'healthy' boolean and optional 'error' message.
    """
    try:
        client = get_supabase_client()
        client.storage.get_bucket(get_settings().artwork_bucket)
        return {"healthy": True}
    except Exception as e:
        return {"healthy": False, "error": str(e)}
