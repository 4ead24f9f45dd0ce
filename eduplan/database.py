from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Integer, String, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


class Record(Base):
    """An opaque key-value blob, rewritten wholesale on every save."""

    __tablename__ = "records"
    key = Column(String, primary_key=True)
    version = Column(Integer, nullable=False, default=1)
    value = Column(JSON)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


def get_engine(db_path=None, url=None):
    """Returns a SQLAlchemy engine for a SQLite file, or for ``url`` if given."""
    return create_engine(url or f"sqlite:///{db_path}")


def init_db(engine):
    """Creates all tables in the database."""
    Base.metadata.create_all(engine)


def get_session(engine):
    """Returns a new session."""
    Session = sessionmaker(bind=engine)
    return Session()
