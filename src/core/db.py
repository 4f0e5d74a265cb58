from sqlalchemy.engine import Engine
from sqlmodel import create_engine

from core.config import settings

# make sure all SQLModel models are imported (models) before initializing DB
# otherwise, SQLModel might fail to initialize relationships properly
# for more details: https://github.com/tiangolo/full-stack-fastapi-postgresql/issues/28
import models  # noqa: F401


def create_db_engine(database_uri: str | None = None) -> Engine:
    return create_engine(
        database_uri or str(settings.SQLALCHEMY_DATABASE_URI), pool_pre_ping=True
    )

