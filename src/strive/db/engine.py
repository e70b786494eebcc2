"""SQLModel engine singleton backing the durable key-value store."""
from sqlmodel import SQLModel, create_engine

from strive.config import get_settings

_engine = None


def get_engine():
    """Return the module-level engine, creating it on first call."""
    global _engine
    if _engine is None:
        settings = get_settings()
        connect_args = {}
        if settings.database_url.startswith("sqlite"):
            # Store calls run in the thread-pool executor
            connect_args["check_same_thread"] = False
        _engine = create_engine(settings.database_url, connect_args=connect_args)
        # Import models so metadata is populated before create_all
        from strive.db.kv import KeyValueEntry  # noqa
        SQLModel.metadata.create_all(_engine)
    return _engine
