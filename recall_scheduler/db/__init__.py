from .database import create_db_engine, create_session_factory, init_db, session_scope

__all__ = [
    "create_db_engine",
    "create_session_factory",
    "init_db",
    "session_scope",
]
