import os

# must be set before app.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_orders.db")

import pytest

from app.db import SessionLocal, init_db


@pytest.fixture(autouse=True)
def clean_db():
    # every test starts from empty tables
    init_db(reset=True)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
