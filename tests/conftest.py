"""
Pytest fixtures for the loan marketplace API tests.

The app is built with an in-memory MongoDB (mongomock), a verifier that
accepts the caller's email as the token and a fake payment gateway.
"""
import mongomock
import pytest
from fastapi.testclient import TestClient

from main import create_app
from tests.helpers import FakeGateway, FakeVerifier, seed_user


@pytest.fixture
def db():
    return mongomock.MongoClient()["loansDb"]


@pytest.fixture
def verifier():
    return FakeVerifier()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(db, verifier, gateway):
    return TestClient(create_app(db=db, verifier=verifier, gateway=gateway))


@pytest.fixture
def borrower(db):
    return seed_user(db, "borrower@test.com", role="borrower")


@pytest.fixture
def manager(db):
    return seed_user(db, "manager@test.com", role="manager")


@pytest.fixture
def admin(db):
    return seed_user(db, "admin@test.com", role="admin")
