import pytest

from cardnav import create_app
from cardnav.config import TestConfig
from cardnav.extensions import db
from cardnav.services.store import ImportStore


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.drop_all()
        db.create_all()
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    """An ImportStore bound to a pushed application context."""
    with app.app_context():
        yield ImportStore()
        db.session.remove()
