from bazaar.core.config import settings
from bazaar.core.database import Base, async_session_maker, engine, get_db
from bazaar.core.redis import close_redis, get_redis
from bazaar.core.security import create_access_token, decode_access_token

__all__ = [
    "settings",
    "Base",
    "engine",
    "async_session_maker",
    "get_db",
    "get_redis",
    "close_redis",
    "create_access_token",
    "decode_access_token",
]
