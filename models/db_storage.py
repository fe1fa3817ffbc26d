from models.user import User
import logging
import threading
from sqlalchemy import create_engine, text
from sqlalchemy.orm import scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.exc import SQLAlchemyError, OperationalError
from os import getenv
from models.base_model import Base
from dotenv import load_dotenv
from utils.exceptions import ServiceUnavailable

load_dotenv()
logger = logging.getLogger(__name__)

# Map model names for easy querying
classes = {
    "User": User,
}


def _engine_options(url: str, timeout: int) -> dict:
    if url in ("sqlite://", "sqlite:///:memory:"):
        # one shared connection, otherwise every checkout is a new empty db
        return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    if url.startswith("sqlite"):
        return {"connect_args": {"timeout": timeout, "check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_size": 10,
        "pool_timeout": timeout,
        "connect_args": {"connect_timeout": timeout},
    }


class DBStorage:
    """
    Lazily connected storage. The engine and tables are created once, on first
    use, under a lock: concurrent first callers block on the same lock and
    reuse whatever the first one built. A failed init leaves nothing cached
    so the next caller retries.
    """
    __engine = None
    __session = None

    def __init__(self, database_url: str | None = None, timeout: int = 5):
        self.__lock = threading.Lock()
        self.database_url = database_url or getenv("DATABASE_URL", "sqlite:///ecomanager.db")
        self.timeout = timeout

    def configure(self, database_url: str, timeout: int = 5):
        """Point storage at a new database; drops any existing connection."""
        with self.__lock:
            self._dispose()
            self.database_url = database_url
            self.timeout = timeout

    def _dispose(self):
        if self.__session is not None:
            self.__session.remove()
        if self.__engine is not None:
            self.__engine.dispose()
        self.__session = None
        self.__engine = None

    def reload(self):
        """Create engine, tables and the scoped session"""
        engine = create_engine(self.database_url, **_engine_options(self.database_url, self.timeout))
        try:
            Base.metadata.create_all(engine)
        except OperationalError as exc:
            engine.dispose()
            logger.error("Database connection failed: %s", exc.__class__.__name__)
            raise ServiceUnavailable("Database connection failed") from exc
        session_factory = sessionmaker(bind=engine, expire_on_commit=False)
        self.__engine = engine
        self.__session = scoped_session(session_factory)
        logger.info("Database connected (%s)", engine.url.get_backend_name())

    def ensure_ready(self):
        """Connect on first use; later calls reuse the cached session."""
        if self.__session is not None:
            return self.__session
        with self.__lock:
            if self.__session is None:
                self.reload()
        return self.__session

    def new(self, obj):
        """Add object to session"""
        self.get_session().add(obj)

    def save(self):
        """Commit session"""
        session = self.get_session()
        try:
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise

    def get(self, cls, id):
        """Fetch one object by class and ID"""
        if cls in classes.values():
            return self.get_session().get(cls, id)
        return None

    def status(self) -> str:
        """connected / disconnected, for the health endpoint"""
        try:
            self.ensure_ready()
            with self.__engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except (ServiceUnavailable, SQLAlchemyError):
            return "disconnected"
        return "connected"

    def close(self):
        """Remove session (for API teardown)"""
        if self.__session is not None:
            self.__session.remove()

    # expose the SQLAlchemy session for advanced querying (filters, updates)
    def get_session(self):
        return self.ensure_ready()
