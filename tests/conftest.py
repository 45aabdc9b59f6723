import os
import time
from urllib.parse import urlencode

import pytest
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_temp.db")

from stryve_gateway.auth import app_proxy_signature  # noqa: E402
from stryve_gateway.config import Settings, get_settings  # noqa: E402
from stryve_gateway.database import Base, get_db  # noqa: E402
from stryve_gateway.main import app as fastapi_app  # noqa: E402

SHOP = "demo.myshopify.com"
API_KEY = "shopify-client-id"
API_SECRET = "shopify-client-secret"

SQLALCHEMY_DATABASE_URL = "sqlite:///./test_temp.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={
                       "check_same_thread": False})
TestingSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture
def test_settings():
    return Settings(
        SHOPIFY_APP_URL="https://stryve-app.example.com",
        SHOPIFY_API_KEY=API_KEY,
        SHOPIFY_API_SECRET=API_SECRET,
        SHOPIFY_PAYMENT_TOKEN="payments-token",
        SHOPIFY_PAYMENTS_API_URL="https://api.shopify.com/payments",
    )


@pytest.fixture
def client(test_settings):
    from fastapi.testclient import TestClient

    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_settings] = lambda: test_settings
    with TestClient(fastapi_app, raise_server_exceptions=False) as c:
        yield c
    fastapi_app.dependency_overrides.clear()


def proxy_query(shop=SHOP, secret=API_SECRET, **extra):
    """Query string as signed by the Shopify app proxy."""
    params = {"shop": shop, "path_prefix": "/apps/stryve", "timestamp": "1700000000", **extra}
    params["signature"] = app_proxy_signature(list(params.items()), secret)
    return urlencode(params)


def session_token(shop=SHOP, secret=API_SECRET, audience=API_KEY):
    now = int(time.time())
    claims = {
        "iss": f"https://{shop}/admin",
        "dest": f"https://{shop}",
        "aud": audience,
        "sub": "42",
        "exp": now + 60,
        "nbf": now - 5,
        "iat": now,
    }
    return jwt.encode(claims, secret, algorithm="HS256")


def stryve_response(mocker, status_code=200, payload=None):
    response = mocker.Mock()
    response.status_code = status_code
    if payload is None:
        response.json.side_effect = ValueError("No JSON")
    else:
        response.json.return_value = payload
    return response
