from codema.core.database.session import async_session, engine, get_db
from codema.core.database.base import Base, BaseModel, BigIntPK

__all__ = ["async_session", "engine", "get_db", "Base", "BaseModel", "BigIntPK"]
