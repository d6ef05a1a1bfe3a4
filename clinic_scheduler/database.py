from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

# Register every table on SQLModel.metadata
from .db import models  # noqa: F401


def build_engine(db_url: str, echo: bool = False) -> Engine:
    # Choose engine options based on database scheme
    engine_kwargs = {}
    if db_url.startswith("sqlite"):
        # busy timeout lets concurrent writers queue instead of failing instantly
        engine_kwargs.update({
            "connect_args": {"check_same_thread": False, "timeout": 15}
        })
    else:
        engine_kwargs.update({
            "pool_pre_ping": True,
            "pool_recycle": 300,
            "pool_size": 5,
            "max_overflow": 10,
        })
    return create_engine(db_url, echo=echo, **engine_kwargs)


def create_db_and_tables(engine: Engine) -> None:
    SQLModel.metadata.create_all(engine)
