"""
Schema manager tests: fresh stores, desktop-app stores and idempotency.

Desktop-app stores are built with plain sqlite3 in a temp file, then opened
with create_app() which upgrades them with Alembic on startup.
"""

import sqlite3

import pytest
import sqlalchemy as sa

from clothpos import create_app
from clothpos.extensions import db
from clothpos.models import User, SaleItem, Sale, Product
from clothpos.services import schema_service, auth_service, products_service, sales_service, reporting_service
from clothpos.services.schema_service import SchemaError, ColumnSpec

HEAD = "0004_sale_items_catalog_fk"


def _config(path, **extra):
    config = {
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f'sqlite:///{path}',
        'BCRYPT_ROUNDS': 4,
        'DEFAULT_ADMIN_PASSWORD': 'admin123',
    }
    config.update(extra)
    return config


def _columns(table):
    return {c["name"] for c in sa.inspect(db.session.connection()).get_columns(table)}


def _close():
    db.session.remove()
    db.engine.dispose()


# Verbatim DDL of the desktop app (cloth-pos.db)
ORIGINAL_SCHEMA = """
CREATE TABLE IF NOT EXISTS products (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,
  cost_price REAL NOT NULL DEFAULT 0,
  selling_price REAL NOT NULL,
  tax_rate REAL DEFAULT 0,
  category TEXT,
  created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS variants (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  product_id INTEGER NOT NULL,
  size TEXT NOT NULL,
  color TEXT NOT NULL,
  stock_qty INTEGER DEFAULT 0,
  FOREIGN KEY (product_id) REFERENCES products(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS sales (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  receipt_number TEXT NOT NULL COLLATE NOCASE,
  timestamp DATETIME DEFAULT CURRENT_TIMESTAMP,
  total REAL NOT NULL,
  payment_method TEXT NOT NULL,
  cashier_id TEXT
);

CREATE TABLE IF NOT EXISTS sale_items (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  sale_id INTEGER NOT NULL,
  product_id INTEGER NOT NULL,
  variant_id INTEGER NOT NULL,
  qty INTEGER NOT NULL,
  cost_at_sale REAL NOT NULL DEFAULT 0,
  price_at_sale REAL NOT NULL,
  discount REAL DEFAULT 0,
  FOREIGN KEY (sale_id) REFERENCES sales(id),
  FOREIGN KEY (variant_id) REFERENCES variants(id)
);

CREATE TABLE IF NOT EXISTS settings (
  key TEXT PRIMARY KEY,
  value TEXT
);

CREATE TABLE IF NOT EXISTS users (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  username TEXT NOT NULL UNIQUE,
  password TEXT NOT NULL,
  role TEXT NOT NULL CHECK(role IN ('admin', 'cashier')),
  created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

INSERT INTO products (id, name, cost_price, selling_price, category) VALUES (1, 'Polo', 10, 30, 'Tops');
INSERT INTO variants (id, product_id, size, color, stock_qty) VALUES (1, 1, 'M', 'White', 5);
INSERT INTO sales (id, receipt_number, timestamp, total, payment_method)
    VALUES (1, 'INV-ABC123', '2024-03-01 00:00:00', 30, 'cash');
INSERT INTO sale_items (id, sale_id, product_id, variant_id, qty, cost_at_sale, price_at_sale, discount)
    VALUES (1, 1, 1, 1, 1, 10, 30, 0);
INSERT INTO settings (key, value) VALUES ('storeName', 'Kente Threads');
INSERT INTO users (id, username, password, role) VALUES (1, 'admin', 'admin123', 'admin');
"""

# An earlier desktop build: sale_items still carried quantity/price
EARLY_SCHEMA = """
CREATE TABLE products (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT NOT NULL, selling_price REAL NOT NULL);
CREATE TABLE variants (id INTEGER PRIMARY KEY AUTOINCREMENT, product_id INTEGER NOT NULL, size TEXT, color TEXT,
                       stock_qty INTEGER DEFAULT 0, FOREIGN KEY (product_id) REFERENCES products(id) ON DELETE CASCADE);
CREATE TABLE sales (id INTEGER PRIMARY KEY AUTOINCREMENT, receipt_number TEXT, timestamp DATETIME DEFAULT CURRENT_TIMESTAMP,
                    total REAL, payment_method TEXT);
CREATE TABLE sale_items (id INTEGER PRIMARY KEY AUTOINCREMENT, sale_id INTEGER, product_id INTEGER, variant_id INTEGER,
                         quantity INTEGER, price REAL, qty INTEGER DEFAULT 0, price_at_sale REAL DEFAULT 0,
                         cost_at_sale REAL DEFAULT 0,
                         FOREIGN KEY (variant_id) REFERENCES variants(id));
CREATE TABLE users (id INTEGER PRIMARY KEY AUTOINCREMENT, username TEXT NOT NULL UNIQUE, password TEXT NOT NULL,
                    role TEXT NOT NULL CHECK(role IN ('admin', 'cashier')), created_at DATETIME DEFAULT CURRENT_TIMESTAMP);

INSERT INTO products (id, name, selling_price) VALUES (1, 'Hoodie', 30);
INSERT INTO variants (id, product_id, size, color, stock_qty) VALUES (1, 1, 'M', 'Grey', 4);
INSERT INTO sales (id, receipt_number, timestamp, total, payment_method)
    VALUES (1, 'INV-OLD001', '2024-03-01 10:00:00', 90, 'cash');
INSERT INTO sale_items (id, sale_id, product_id, variant_id, quantity, price, qty, price_at_sale)
    VALUES (1, 1, 1, 1, 3, 30, 0, 0);
INSERT INTO sale_items (id, sale_id, product_id, variant_id, quantity, price, qty, price_at_sale)
    VALUES (2, 1, 1, 1, 9, 99, 2, 25);
INSERT INTO users (id, username, password, role) VALUES (1, 'owner', 'hunter22', 'admin');
"""


def _build(tmp_path, name, script):
    path = tmp_path / name
    conn = sqlite3.connect(path)
    conn.executescript(script)
    conn.commit()
    conn.close()
    return path


@pytest.fixture
def original_db(tmp_path):
    return _build(tmp_path, "cloth-pos.db", ORIGINAL_SCHEMA)


@pytest.fixture
def early_db(tmp_path):
    return _build(tmp_path, "early.db", EARLY_SCHEMA)


# =============================================================================
# FRESH STORE
# =============================================================================


def test_fresh_store_is_created_at_head(app, db_session):
    assert schema_service.current_version() == HEAD
    admin = db_session.query(User).filter_by(username="admin").one()
    assert admin.role == "admin"
    assert admin.password_hash != "admin123"


def test_run_migrations_is_idempotent(app, db_session):
    before = {t: _columns(t) for t in ("products", "variants", "sales", "sale_items", "users")}

    assert schema_service.run_migrations() == []
    assert schema_service.run_migrations() == []

    after = {t: _columns(t) for t in before}
    assert before == after
    assert db_session.query(User).count() == 1


def test_add_missing_columns_only_adds_absent(app, db_session):
    bind = db_session.connection()
    added = schema_service.add_missing_columns(
        bind, "products", [ColumnSpec("name", "TEXT", "''"), ColumnSpec("season", "TEXT", "'all'")]
    )
    assert added == ["season"]
    assert schema_service.add_missing_columns(bind, "products", [ColumnSpec("season", "TEXT")]) == []
    # Undo so other tests see the canonical table
    db_session.rollback()
    assert "season" not in _columns("products")


def test_schema_status_reports_nothing_pending(app, db_session):
    status = schema_service.schema_status()
    assert status == {"version": HEAD, "latest": HEAD, "pending": []}


# =============================================================================
# DESKTOP-APP STORES
# =============================================================================


def test_original_store_is_upgraded_from_base(original_db):
    app = create_app(_config(original_db))

    with app.app_context():
        assert schema_service.current_version() == HEAD

        # Catalog foreign keys dropped, rows kept
        fks = sa.inspect(db.session.connection()).get_foreign_keys("sale_items")
        assert {fk["referred_table"] for fk in fks} == {"sales"}
        item = db.session.get(SaleItem, 1)
        assert (item.qty, float(item.price_at_sale)) == (1, 30.0)

        owner = db.session.query(User).filter_by(username="admin").one()
        assert owner.password_hash.startswith("$2")
        assert auth_service.validate_user("admin", "admin123")["role"] == "admin"
        assert db.session.query(User).count() == 1

        _close()


def test_original_store_product_delete_keeps_sale_history(original_db):
    app = create_app(_config(original_db))

    with app.app_context():
        products_service.delete_product(1)

        assert db.session.get(Product, 1) is None
        assert db.session.query(SaleItem).filter_by(sale_id=1).count() == 1
        details = sales_service.get_sale_details(1)
        assert details[0]["name"] is None
        assert details[0]["qty"] == 1

        _close()


def test_original_store_report_includes_sale_on_bound(original_db):
    app = create_app(_config(original_db))

    with app.app_context():
        assert reporting_service.profit_report("2024-03-01", "2024-03-01") == [
            {"category": "Tops", "profit": 20.0, "revenue": 30.0}
        ]
        assert reporting_service.sales_trend("2024-03-01", "2024-03-01") == [
            {"date": "2024-03-01", "revenue": 30.0}
        ]
        _close()


def test_early_store_is_upgraded(early_db):
    app = create_app(_config(early_db))

    with app.app_context():
        assert schema_service.current_version() == HEAD

        # Missing columns backfilled
        assert {"cost_price", "tax_rate", "category", "created_at"} <= _columns("products")
        assert {"cashier_id"} <= _columns("sales")

        # sale_items rebuilt without the legacy pair or the variants foreign key
        columns = _columns("sale_items")
        assert "quantity" not in columns and "price" not in columns
        fks = sa.inspect(db.session.connection()).get_foreign_keys("sale_items")
        assert "variants" not in {fk["referred_table"] for fk in fks}

        items = {i.id: i for i in db.session.query(SaleItem).all()}
        assert items[1].qty == 3                  # zero canonical value replaced
        assert float(items[1].price_at_sale) == 30.0
        assert items[2].qty == 2                  # non-zero canonical value kept
        assert float(items[2].price_at_sale) == 25.0

        sale = db.session.get(Sale, 1)
        assert sale.receipt_number == "INV-OLD001"

        # Plaintext credentials replaced by a bcrypt hash
        assert "password" not in _columns("users")
        owner = db.session.query(User).filter_by(username="owner").one()
        assert owner.password_hash.startswith("$2")
        assert auth_service.validate_user("owner", "hunter22")["role"] == "admin"

        # Users existed, so no default admin was seeded
        assert db.session.query(User).count() == 1

        _close()


def test_second_start_is_noop(early_db):
    first = create_app(_config(early_db))
    with first.app_context():
        _close()

    second = create_app(_config(early_db))
    with second.app_context():
        assert schema_service.run_migrations() == []
        assert db.session.query(SaleItem).count() == 2
        _close()


def test_failed_migration_rolls_back_everything(early_db, monkeypatch):
    def broken(bind):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(schema_service, "hash_legacy_credentials", broken)

    with pytest.raises(SchemaError):
        create_app(_config(early_db))

    conn = sqlite3.connect(early_db)
    try:
        tables = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
        sale_item_columns = {r[1] for r in conn.execute("PRAGMA table_info(sale_items)")}
        product_columns = {r[1] for r in conn.execute("PRAGMA table_info(products)")}
    finally:
        conn.close()

    # Neither the revision stamp nor the earlier revisions' work survived
    assert "alembic_version" not in tables
    assert "settings" not in tables
    assert "quantity" in sale_item_columns
    assert "category" not in product_columns


def test_repair_refuses_legacy_column_without_counterpart(tmp_path):
    path = _build(
        tmp_path,
        "broken.db",
        """
        CREATE TABLE sale_items (id INTEGER PRIMARY KEY, sale_id INTEGER, product_id INTEGER,
                                 variant_id INTEGER, quantity INTEGER, price_at_sale REAL);
        """,
    )

    # Revision 0001 would add qty first; call the repair on the unbackfilled table
    app = create_app(_config(path, SCHEMA_AUTO_MIGRATE=False))
    with app.app_context():
        assert schema_service.current_version() is None
        with pytest.raises(SchemaError):
            schema_service.repair_malformed_sale_items(db.session.connection())
        db.session.rollback()
        _close()


def test_detach_is_noop_on_canonical_table(app, db_session):
    assert schema_service.detach_sale_items_from_catalog(db_session.connection()) is False
    db_session.rollback()
