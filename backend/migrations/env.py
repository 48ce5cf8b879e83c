# Overview: Alembic environment; runs revisions on the app's engine or on a connection handed in by run_migrations().

from alembic import context
from flask import current_app

config = context.config


def get_engine():
    return current_app.extensions["migrate"].db.engine


def get_metadata():
    return current_app.extensions["migrate"].db.metadata


def _configure_args() -> dict:
    conf_args = dict(current_app.extensions["migrate"].configure_args)
    # One transaction for the whole upgrade, DDL included (SQLite defaults to per-statement)
    conf_args["transactional_ddl"] = True
    conf_args["transaction_per_migration"] = False
    return conf_args


def run_migrations_offline():
    """Emit SQL to stdout instead of executing it (flask db upgrade --sql)."""
    context.configure(
        url=get_engine().url.render_as_string(hide_password=False),
        target_metadata=get_metadata(),
        literal_binds=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def _run_on(connection):
    context.configure(
        connection=connection,
        target_metadata=get_metadata(),
        **_configure_args(),
    )

    # No-op when the caller's connection is already inside a transaction
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    connection = config.attributes.get("connection")
    if connection is not None:
        _run_on(connection)
        return

    with get_engine().connect() as connection:
        _run_on(connection)


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
