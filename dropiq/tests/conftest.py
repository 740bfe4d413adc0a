import pytest

from dropiq.app import create_app
from dropiq.auth.rate_limit import limiter
from dropiq.db.session import get_engine, get_session
from dropiq.models import User

from support import FakeChainData, FakePaymentGateway, FakeThreatFeed, FakeTokenSecurity, register

TEST_CONFIG = {
    "TESTING": True,
    "SEED_SAMPLE_DATA": False,
    "RATELIMIT_ENABLED": False,
    "BCRYPT_LOG_ROUNDS": 4,
    "AUTOMATION_EXECUTION_DELAY": 0,
    "JWT_SECRET": "test-secret",
    "LOG_LEVEL": "WARNING",
}


@pytest.fixture()
def fakes():
    return {
        "payments": FakePaymentGateway(),
        "chain_data": FakeChainData(),
        "token_security": FakeTokenSecurity(),
        "threat_feed": FakeThreatFeed(),
    }


@pytest.fixture()
def make_app(tmp_path, fakes):
    created = []

    def factory(**overrides):
        config = dict(TEST_CONFIG, DATABASE_URL=f"sqlite:///{tmp_path / 'dropiq.db'}")
        config.update(overrides)
        app = create_app(config, services=fakes)
        created.append(app)
        return app

    yield factory
    get_engine().dispose()


@pytest.fixture()
def app(make_app):
    return make_app()


@pytest.fixture()
def client(app):
    # storage only exists when the limiter was initialised enabled
    if limiter.enabled:
        limiter.reset()
    with app.test_client(use_cookies=False) as client:
        yield client


@pytest.fixture()
def db(app):
    session = get_session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def user_token(client):
    return register(client)["token"]


@pytest.fixture()
def admin_token(client, db):
    data = register(client, email="admin@example.com", name="Admin")
    user = db.get(User, data["user"]["id"])
    user.role = "admin"
    db.commit()
    # require_role reads the role from the database, so the token stays valid
    return data["token"]
