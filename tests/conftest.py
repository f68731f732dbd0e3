from decimal import Decimal

import pytest

from app import create_app
from auth import ACCESS, TokenSettings, encode_token
from config import TestConfig
from models import Product, User, UserRole, db
from orders import OrderService


def make_user(username, role=UserRole.CUSTOMER, status=True, password="secret123"):
    user = User(username=username, email=f"{username}@example.com",
                first_name=username.title(), last_name="Tester", role=role, status=status)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def app(tmp_path):
    app = create_app(TestConfig)
    app.config["UPLOAD_FOLDER"] = str(tmp_path / "uploads")
    app.config["PUBLIC_URL_BASE"] = "http://files.test/uploads"
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def customer(app):
    return make_user("alice")


@pytest.fixture
def inactive_user(app):
    return make_user("bob", status=False)


@pytest.fixture
def admin(app):
    return make_user("root", role=UserRole.ADMIN)


@pytest.fixture
def products(app):
    a = Product(name="Party Bag", description="Birthday bag", price=Decimal("10.00"), stock=50)
    b = Product(name="Balloon", description="Red balloon", price=Decimal("5.00"), stock=3)
    db.session.add_all([a, b])
    db.session.commit()
    return a, b


@pytest.fixture
def orders(app):
    return OrderService(db.session)


@pytest.fixture
def auth_header(app):
    def _header(user, kind=ACCESS):
        token = encode_token(user, kind, TokenSettings.from_config(app.config))
        return {"Authorization": f"Bearer {token}"}
    return _header
