from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from college_leave.core.config import settings

# MySQL in deployment, SQLite for local development/testing
DATABASE_URL = settings.database_url


def build_engine(url: str, **kwargs):
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
        connect_args.update(kwargs.pop("connect_args", {}))
        return create_engine(url, connect_args=connect_args, **kwargs)
    # Pooled connections for concurrent reviewers
    return create_engine(
        url,
        pool_size=settings.storage.pool_size,
        pool_recycle=settings.storage.pool_recycle_seconds,
        pool_pre_ping=True,
        **kwargs
    )


engine = build_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """
    Session Provider: Provides a database session per request.
    Transaction management is handled explicitly in the Service Layer.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """
    Registers all leave models and initializes the database schema.
    This should be called during the application startup lifespan.
    """
    # Import all models to ensure they are registered with Base.metadata before create_all
    from college_leave.models import (  # noqa: F401
        leave_request, leave_attachment, leave_status_change, leave_balance
    )
    Base.metadata.create_all(bind=bind or engine)
