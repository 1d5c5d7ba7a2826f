from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from ..app.config import Config
from ..utils.logger import get_logger

DATABASE_URL = Config.DATABASE_URL

logger = get_logger("db")


def make_engine(url: str = DATABASE_URL, **kwargs):
    """SQLAlchemy engine; SQLite connections may be shared across the fetch threads."""
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    return create_engine(url, **kwargs)


engine = make_engine()

# Sessions are opened per data source call, never per request
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def create_tables(bind=None):
    """Create all tables in the database."""
    # Models must be imported so they register with Base.metadata
    from .models import Transaction, Budget, Loan, SavingsGoal, Trip  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database tables created successfully.")


if __name__ == "__main__":
    create_tables()
