from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker

from chiffrage.core.config import settings


def create_db_engine(url: str, **kwargs) -> Engine:
    """
    Crée le moteur SQLAlchemy.

    Pour SQLite, le driver pysqlite gère lui-même les BEGIN et casse les
    SAVEPOINT : on reprend la main sur le début de transaction et on active
    les clés étrangères à chaque connexion.
    """
    if make_url(url).get_backend_name() == 'sqlite':
        # Sessions servies par le pool de threads FastAPI
        kwargs.setdefault('connect_args', {'check_same_thread': False})

    engine = create_engine(url, **kwargs)

    if engine.dialect.name == 'sqlite':
        @event.listens_for(engine, 'connect')
        def _sqlite_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute('PRAGMA foreign_keys=ON')
            cursor.close()

        @event.listens_for(engine, 'begin')
        def _sqlite_begin(conn):
            conn.exec_driver_sql('BEGIN')

    return engine


engine = create_db_engine(settings.DATABASE_URL, echo=settings.SQL_ECHO)
SessionLocal = sessionmaker(bind=engine, autoflush=True, expire_on_commit=False)
