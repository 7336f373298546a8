import logging
import os

from dotenv import load_dotenv
from fastapi import Request
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine, Session

load_dotenv()

logger = logging.getLogger(__name__)

# Supabase and Render both hand out a postgres DATABASE_URL.
DATABASE_URL = os.getenv("DATABASE_URL")


def build_engine(database_url: str = None, **kwargs) -> Engine:
    url = database_url or DATABASE_URL
    if not url:
        logger.warning("DATABASE_URL not set, falling back to local sqlite file")
        url = "sqlite:///./barbershop.db"

    # check_same_thread=False is needed only for SQLite
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    engine = create_engine(url, connect_args=connect_args, **kwargs)

    if url.startswith("sqlite"):
        # SQLite leaves foreign keys unenforced unless asked per connection
        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def create_db_and_tables(engine: Engine):
    SQLModel.metadata.create_all(engine)


def get_session(request: Request):
    with Session(request.app.state.engine) as session:
        yield session
