# app/core/supabase_client.py
from functools import lru_cache
from supabase import create_client, Client

from app.core.config import get_settings


@lru_cache
def supabase_public() -> Client:
    """
    Supabase client with the anon/public key.

    Used to call edge functions (order confirmation e-mail).
    Still subject to RLS.
    """
    settings = get_settings()
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
