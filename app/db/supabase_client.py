"""Supabase client initialization."""

from functools import lru_cache

from supabase import Client, create_client

from app.core.config import get_settings


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """
    Get the shared Supabase client used by the funnel store.

    Returns:
        Supabase client configured with the service role key

    Raises:
        RuntimeError: If the client cannot be created from settings
    """
    settings = get_settings()
    try:
        return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
    except Exception as e:
        raise RuntimeError(f"Failed to initialize Supabase client for {settings.SUPABASE_URL}: {e}") from e
