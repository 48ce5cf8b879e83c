# Overview: Service-layer operations for the database schema; Alembic upgrades, legacy repairs and seeding.

"""
Schema/Migration Manager

Brings any existing store up to the current model, whichever version of the
application created it. Versioning is Alembic's (backend/migrations); each
revision calls the idempotent helpers below with its own connection:

- 0001 ensure_schema() + add_missing_columns() backfill
- 0002 repair_malformed_sale_items()
- 0003 hash_legacy_credentials()
- 0004 detach_sale_items_from_catalog()

A store created by the desktop app has no alembic_version table and is
upgraded from base; every helper inspects before it changes anything.

run_migrations() runs the upgrade and seed_default_admin() on the session's
connection, as one transaction. Any failure rolls the whole unit back and
raises SchemaError; the application must not start on a half-migrated store.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import sqlalchemy as sa
from alembic import command
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from flask import current_app

from ..extensions import db, migrate
from ..models import User, SaleItem


class SchemaError(RuntimeError):
    """Fatal: the store could not be brought to the current schema."""


@dataclass(frozen=True)
class ColumnSpec:
    name: str
    type: str
    default: str | None = None


_IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Columns older stores may lack. SQLite refuses non-constant defaults in
# ALTER TABLE ADD COLUMN, so timestamp columns are added without one.
LEGACY_COLUMNS: dict[str, list[ColumnSpec]] = {
    "products": [
        ColumnSpec("name", "TEXT", "''"),
        ColumnSpec("cost_price", "REAL", "0"),
        ColumnSpec("selling_price", "REAL", "0"),
        ColumnSpec("tax_rate", "REAL", "0"),
        ColumnSpec("category", "TEXT"),
        ColumnSpec("created_at", "DATETIME"),
    ],
    "variants": [
        ColumnSpec("product_id", "INTEGER", "0"),
        ColumnSpec("size", "TEXT", "''"),
        ColumnSpec("color", "TEXT", "''"),
        ColumnSpec("stock_qty", "INTEGER", "0"),
    ],
    "sales": [
        ColumnSpec("receipt_number", "TEXT", "'WAITING'"),
        ColumnSpec("timestamp", "DATETIME"),
        ColumnSpec("total", "REAL", "0"),
        ColumnSpec("payment_method", "TEXT", "'cash'"),
        ColumnSpec("cashier_id", "INTEGER"),
    ],
    "sale_items": [
        ColumnSpec("sale_id", "INTEGER", "0"),
        ColumnSpec("product_id", "INTEGER", "0"),
        ColumnSpec("variant_id", "INTEGER", "0"),
        ColumnSpec("qty", "INTEGER", "1"),
        ColumnSpec("cost_at_sale", "REAL", "0"),
        ColumnSpec("price_at_sale", "REAL", "0"),
        ColumnSpec("discount", "REAL", "0"),
    ],
}

LEGACY_SALE_ITEM_COLUMNS = {"quantity": "qty", "price": "price_at_sale"}

# Sale history must survive catalog deletes
CATALOG_TABLES = {"products", "variants"}


def _quote(name: str) -> str:
    if not _IDENT_RE.match(name):
        raise SchemaError(f"Invalid identifier: {name!r}")
    return f'"{name}"'


def _column_names(bind, table: str) -> set[str]:
    return {col["name"] for col in sa.inspect(bind).get_columns(table)}


def ensure_schema(bind) -> None:
    """Create every model table that does not exist yet."""
    db.metadata.create_all(bind=bind, checkfirst=True)


def add_missing_columns(bind, table: str, column_specs: list[ColumnSpec]) -> list[str]:
    """
    ALTER TABLE ADD COLUMN for each spec whose column is absent.

    Returns the names of the columns that were added (empty when current).
    """
    existing = _column_names(bind, table)
    added = []
    for spec in column_specs:
        if spec.name in existing:
            continue
        ddl = f"ALTER TABLE {_quote(table)} ADD COLUMN {_quote(spec.name)} {spec.type}"
        if spec.default is not None:
            ddl += f" DEFAULT {spec.default}"
        bind.exec_driver_sql(ddl)
        existing.add(spec.name)
        added.append(spec.name)
    if added:
        current_app.logger.info("Added columns to %s: %s", table, ", ".join(added))
    return added


def backfill_legacy_columns(bind) -> None:
    for table, specs in LEGACY_COLUMNS.items():
        add_missing_columns(bind, table, specs)


def _drop_indexes(bind, table: str) -> None:
    for index in sa.inspect(bind).get_indexes(table):
        name = index.get("name")
        if name and not name.startswith("sqlite_autoindex"):
            bind.exec_driver_sql(f"DROP INDEX IF EXISTS {_quote(name)}")


def _rebuild_sale_items(bind, qty_expr: str = "qty", price_expr: str = "price_at_sale") -> None:
    """Recreate sale_items in its canonical shape, copying every row."""
    bind.exec_driver_sql("ALTER TABLE sale_items RENAME TO sale_items_old")
    _drop_indexes(bind, "sale_items_old")
    SaleItem.__table__.create(bind=bind)
    bind.exec_driver_sql(
        f"""
        INSERT INTO sale_items (id, sale_id, product_id, variant_id, qty, cost_at_sale, price_at_sale, discount)
        SELECT
            id,
            sale_id,
            product_id,
            variant_id,
            {qty_expr},
            COALESCE(cost_at_sale, 0),
            {price_expr},
            COALESCE(discount, 0)
        FROM sale_items_old
        """
    )
    bind.exec_driver_sql("DROP TABLE sale_items_old")


def repair_malformed_sale_items(bind) -> bool:
    """
    Rebuild sale_items when legacy quantity/price columns sit next to qty/price_at_sale.

    Rows are copied preferring the canonical value unless it is zero/NULL.
    Returns True when a repair was performed.
    """
    columns = _column_names(bind, "sale_items")
    legacy = {old for old in LEGACY_SALE_ITEM_COLUMNS if old in columns}
    if not legacy:
        return False

    missing = {LEGACY_SALE_ITEM_COLUMNS[old] for old in legacy} - columns
    if missing:
        raise SchemaError(
            f"sale_items has legacy columns but lacks {', '.join(sorted(missing))}"
        )

    current_app.logger.warning("Detected malformed sale_items schema. Recreating table...")

    def pick(canonical: str, old: str) -> str:
        if old in legacy:
            return f"COALESCE(NULLIF({canonical}, 0), {old})"
        return canonical

    _rebuild_sale_items(bind, pick("qty", "quantity"), pick("price_at_sale", "price"))
    return True


def detach_sale_items_from_catalog(bind) -> bool:
    """
    Drop foreign keys from sale_items to variants/products.

    The desktop app declared sale_items.variant_id REFERENCES variants(id);
    with foreign keys enforced that blocks deleting any product that has
    sold. Returns True when the table was rebuilt.
    """
    catalog_fks = [
        fk for fk in sa.inspect(bind).get_foreign_keys("sale_items")
        if fk.get("referred_table") in CATALOG_TABLES
    ]
    if not catalog_fks:
        return False

    current_app.logger.warning(
        "sale_items references %s; rebuilding without catalog foreign keys",
        ", ".join(sorted({fk["referred_table"] for fk in catalog_fks})),
    )
    _rebuild_sale_items(bind)
    return True


def hash_legacy_credentials(bind) -> int:
    """
    Replace a plaintext users.password column with bcrypt password_hash.

    Returns the number of accounts converted.
    """
    from .auth_service import hash_password

    columns = _column_names(bind, "users")
    if "password" not in columns:
        return 0

    created = "created_at" if "created_at" in columns else "NULL AS created_at"
    rows = bind.exec_driver_sql(
        f"SELECT id, username, password, role, {created} FROM users"
    ).mappings().all()

    # Never rename users itself: SQLite would repoint session_tokens.user_id
    User.__table__.to_metadata(sa.MetaData(), name="users_new").create(bind=bind)

    # created_at is copied as the raw stored text
    for row in rows:
        bind.exec_driver_sql(
            "INSERT INTO users_new (id, username, password_hash, role, created_at) VALUES (?, ?, ?, ?, ?)",
            (
                row["id"],
                row["username"],
                hash_password(row["password"] or "", check_strength=False),
                row["role"] if row["role"] in ("admin", "cashier") else "cashier",
                row["created_at"],
            ),
        )
    bind.exec_driver_sql("DROP TABLE users")
    bind.exec_driver_sql("ALTER TABLE users_new RENAME TO users")
    current_app.logger.info("Hashed %d legacy plaintext credentials", len(rows))
    return len(rows)


def seed_default_admin() -> bool:
    """Insert the default admin account when no users exist. Returns True if seeded."""
    from .auth_service import hash_password

    if db.session.query(User).count() > 0:
        return False

    username = current_app.config.get("DEFAULT_ADMIN_USERNAME", "admin")
    password = current_app.config.get("DEFAULT_ADMIN_PASSWORD", "admin123")
    db.session.add(
        User(
            username=username,
            password_hash=hash_password(password, check_strength=False),
            role="admin",
        )
    )
    db.session.flush()
    current_app.logger.warning(
        "Default admin user created: username=%s, password=%s (change it now)",
        username,
        password,
    )
    return True


def _script() -> ScriptDirectory:
    return ScriptDirectory.from_config(migrate.get_config())


def _pending(script: ScriptDirectory, version: str | None) -> list[str]:
    revisions = [rev.revision for rev in script.iterate_revisions("heads", version or "base")]
    revisions.reverse()
    return revisions


def current_version() -> str | None:
    """Alembic revision recorded in the store, None when never stamped."""
    return MigrationContext.configure(db.session.connection()).get_current_revision()


def run_migrations() -> list[str]:
    """
    Alembic upgrade to head + admin seed, as one transaction.

    Returns the revisions applied by this call, oldest first.
    """
    config = migrate.get_config()
    try:
        pending = _pending(ScriptDirectory.from_config(config), current_version())
        # env.py runs on this connection instead of opening its own
        config.attributes["connection"] = db.session.connection()
        command.upgrade(config, "head")
        seed_default_admin()
        db.session.commit()
    except Exception as exc:
        db.session.rollback()
        current_app.logger.exception("Schema migration failed")
        raise SchemaError(f"Database migration failed: {exc}") from exc

    if pending:
        current_app.logger.info("Applied schema migrations: %s", ", ".join(pending))
    return pending


def schema_status() -> dict:
    script = _script()
    version = current_version()
    db.session.rollback()
    return {
        "version": version,
        "latest": script.get_current_head(),
        "pending": _pending(script, version),
    }
