# app/infra/supabase_client.py
import logging

from supabase import create_client, Client

from app.core.config import settings
from app.core.errors import ConfigError

logger = logging.getLogger(__name__)

_client: Client | None = None


def get_supabase() -> Client:
    """Process-wide service-role client; fails fast when credentials are missing."""
    global _client
    if _client is not None:
        return _client
    if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_ROLE_KEY:
        raise ConfigError("Missing SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY")
    _client = create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
    logger.info("supabase client initialized url=%s", settings.SUPABASE_URL)
    return _client
