# Overview: Flask extension instances for database and migrations; SQLite connection setup.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from sqlalchemy import event

db = SQLAlchemy()
migrate = Migrate()


def _sqlite_on_connect(dbapi_connection, connection_record):
    # Hand transaction control to SQLAlchemy so DDL runs inside BEGIN/COMMIT too.
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _sqlite_on_begin(conn):
    conn.exec_driver_sql("BEGIN")


def configure_sqlite(engine) -> None:
    """
    Enable foreign keys and real transactions on SQLite engines.

    pysqlite never opens a transaction before DDL statements, which would make
    schema repairs non-atomic. Emitting BEGIN ourselves fixes that.
    """
    if engine.dialect.name != "sqlite":
        return
    if event.contains(engine, "connect", _sqlite_on_connect):
        return
    event.listen(engine, "connect", _sqlite_on_connect)
    event.listen(engine, "begin", _sqlite_on_begin)
