from collections.abc import Generator
from typing import Annotated

from fastapi import Depends
from sqlmodel import SQLModel, Session, create_engine

import config

engine = create_engine(
    config.DATABASE_URL,
    echo=config.DB_ECHO,
)


def create_db_and_tables() -> None:
    """Create all tables in the database if they don't exist."""
    SQLModel.metadata.create_all(engine)


def get_session() -> Generator[Session, None, None]:
    """Yield a database session for dependency injection."""
    with Session(engine) as session:
        yield session


SessionDep = Annotated[Session, Depends(get_session)]
