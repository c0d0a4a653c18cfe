# supabase_client.py — Supabase client initialization

from supabase import create_client, Client
from config import SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY

# Global Supabase client instance
_supabase_admin: Client = None


def get_supabase_admin() -> Client:
    """
    Get Supabase client with service role key (admin privileges).
    Used server-side for storage uploads, so the browser never holds the key.
    """
    global _supabase_admin

    if _supabase_admin is None:
        if not SUPABASE_URL or not SUPABASE_SERVICE_ROLE_KEY:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set in environment variables")

        _supabase_admin = create_client(SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY)

    return _supabase_admin


def is_supabase_configured() -> bool:
    """Check if Supabase Storage is configured with the required environment variables."""
    return bool(SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY)
