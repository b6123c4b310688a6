"""Database configuration and initialization."""
from sqlalchemy import BigInteger, Integer, create_engine
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

# Create SQLAlchemy base
Base = declarative_base()

# BIGINT primary keys on PostgreSQL, rowid-backed INTEGER on SQLite
BigIntPK = BigInteger().with_variant(Integer, 'sqlite')

# Global session and engine
engine = None
db_session = scoped_session(sessionmaker(autocommit=False, autoflush=False))


def init_db(app):
    """Initialize database connection."""
    global engine

    database_uri = app.config['SQLALCHEMY_DATABASE_URI']
    echo = app.config.get('SQLALCHEMY_ECHO', False)

    if database_uri.startswith('sqlite'):
        # Single shared connection so an in-memory database survives across sessions
        engine = create_engine(
            database_uri,
            echo=echo,
            connect_args={'check_same_thread': False},
            poolclass=StaticPool
        )
    else:
        engine = create_engine(
            database_uri,
            echo=echo,
            pool_pre_ping=True,  # Enable connection health checks
            pool_size=10,
            max_overflow=20
        )

    db_session.remove()
    db_session.configure(bind=engine)

    Base.query = db_session.query_property()

    # Register teardown
    @app.teardown_appcontext
    def shutdown_session(exception=None):
        """Close database session and rollback on error."""
        if exception:
            db_session.rollback()
        db_session.remove()


def create_all():
    """Create every table known to the models package."""
    import multipos.models  # noqa: F401  (register mappers)
    Base.metadata.create_all(bind=engine)


def drop_all():
    """Drop every table (tests and `flask init-db --drop`)."""
    import multipos.models  # noqa: F401
    Base.metadata.drop_all(bind=engine)


def get_session():
    """Get database session."""
    return db_session


# Alias for easier imports
db = db_session
