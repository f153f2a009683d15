"""
Pytest fixtures for Warehouse Edge backend tests.

Provides an app bound to in-memory SQLite, a per-test table wipe, and the
warehouses, products and users most tests need.
"""

import pytest
from sqlalchemy.pool import StaticPool

from warehouse_edge import create_app
from warehouse_edge.extensions import db
from warehouse_edge.models import Category, Product, User, Warehouse


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_ENGINE_OPTIONS': {
            'connect_args': {'check_same_thread': False},
            'poolclass': StaticPool,
        },
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'REQUEST_SUBMIT_ROLES': ('DepartmentEmployee',),
        'RECENT_ACTIVITY_DAYS': 7,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def warehouse(db_session):
    wh = Warehouse(id="wh1", name="Main Warehouse", location="Building A")
    db_session.add(wh)
    db_session.add(Warehouse(id="wh2", name="Textile Storage", location="Building B"))
    db_session.add_all([
        Category(id="cat1", name="Electronics"),
        Category(id="cat2", name="Raw Materials"),
        Category(id="cat3", name="Office Supplies"),
    ])
    db_session.commit()
    return wh


@pytest.fixture(scope='function')
def products(db_session, warehouse):
    """Two Electronics products, one Raw Materials product, keyed by id."""
    rows = [
        Product(id="prod1", sku="AC-P-001", name="Alpha-Core Processor", category="Electronics",
                warehouse_id="wh1", quantity=150, reorder_level=50, status="Available"),
        Product(id="prod2", sku="BS-RM-016", name="Beta-Series RAM Module", category="Electronics",
                warehouse_id="wh1", quantity=35, reorder_level=25, status="Low Stock"),
        Product(id="prod3", sku="GF-R-BLU", name="Gamma Fabric Roll", category="Raw Materials",
                warehouse_id="wh2", quantity=0, reorder_level=100, status="Out of Stock"),
    ]
    db_session.add_all(rows)
    db_session.commit()
    return {p.id: p for p in rows}


@pytest.fixture(scope='function')
def users(db_session):
    """admin, manager, charlie (Electronics), diana (Raw Materials)."""
    rows = {
        "admin": User(id="user1", name="Alice Admin", email="admin@example.com", role="Admin"),
        "manager": User(id="user2", name="Bob Manager", email="manager@example.com", role="WarehouseManager"),
        "charlie": User(id="user3", name="Charlie Tech", email="charlie@example.com",
                        role="DepartmentEmployee", category_access="Electronics"),
        "diana": User(id="user4", name="Diana Fabric", email="diana@example.com",
                      role="DepartmentEmployee", category_access="Raw Materials"),
    }
    db_session.add_all(rows.values())
    db_session.commit()
    return rows


@pytest.fixture(scope='function')
def seed(products, users):
    """Warehouses, products and users together."""
    return {"products": products, "users": users}


def user_headers(user_id: str) -> dict:
    """Helper to act as a user through the API."""
    return {'X-User-Id': user_id}
