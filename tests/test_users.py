"""
Tests for account management and photo upload.
"""
import os

import pytest
from werkzeug.exceptions import BadRequest, Conflict, NotFound

from models import User, db
from orders import OrderService
from storage import get_storage
from users import UserService


@pytest.fixture
def service(app):
    return UserService(db.session, storage=get_storage())


def _signup(service, **overrides):
    data = {"username": "carol", "email": "carol@example.com", "password": "pw12345"}
    data.update(overrides)
    return service.create(data)


class TestUsers:

    def test_create_hashes_password(self, service):
        user = _signup(service)
        assert user.role == "customer"
        assert user.status is True
        assert user.password_hash != "pw12345"
        assert "password_hash" not in user.to_dict()

    @pytest.mark.parametrize("overrides", [
        {"email": "alice@example.com"},
        {"username": "alice"},
    ])
    def test_duplicates_are_conflicts(self, service, customer, overrides):
        with pytest.raises(Conflict):
            _signup(service, **overrides)
        assert db.session.query(User).count() == 1

    def test_duplicate_email_racing_past_the_check(self, service, customer, monkeypatch):
        monkeypatch.setattr(service, "_taken", lambda *args, **kwargs: False)
        with pytest.raises(Conflict):
            _signup(service, email="alice@example.com")
        assert db.session.query(User).count() == 1

    def test_missing_fields(self, service):
        with pytest.raises(BadRequest):
            service.create({"username": "x"})

    def test_update_email_conflict(self, service, customer, admin):
        with pytest.raises(Conflict):
            service.update(customer.id, {"email": "root@example.com"})
        updated = service.update(customer.id, {"email": "alice@example.com", "first_name": "Al"})
        assert updated.first_name == "Al"

    def test_update_password(self, service, customer):
        service.update(customer.id, {"password": "newpass"})
        assert customer.check_password("newpass")

    def test_deactivate_toggles(self, service, customer):
        assert service.deactivate(customer.id)["status"] is False
        assert service.deactivate(customer.id)["status"] is True

    def test_find_by_email(self, service, customer):
        assert service.find_by_email("alice@example.com").id == customer.id
        with pytest.raises(NotFound):
            service.find_by_email("ghost@example.com")

    def test_remove(self, service, customer):
        service.remove(customer.id)
        with pytest.raises(NotFound):
            service.find_one(customer.id)

    def test_remove_with_orders(self, service, customer, products):
        OrderService(db.session).create(customer.id, [{"product_id": products[0].id, "quantity": 1}])
        with pytest.raises(Conflict):
            service.remove(customer.id)

    def test_change_password(self, service, customer):
        with pytest.raises(BadRequest):
            service.change_password(customer.id, "wrong", "next")
        service.change_password(customer.id, "secret123", "next")
        assert service.validate_password("alice@example.com", "next").id == customer.id
        assert service.validate_password("alice@example.com", "secret123") is None


class TestPhoto:

    def test_upload_stores_file_and_url(self, app, service, customer):
        user = service.upload_photo(customer.id, b"\x89PNG fake", "image/png")
        assert user.photo_url.startswith("http://files.test/uploads/profile-photos/")
        assert user.photo_url.endswith(".png")
        name = user.photo_url.rsplit("/", 1)[1]
        path = os.path.join(app.config["UPLOAD_FOLDER"], "profile-photos", name)
        with open(path, "rb") as fh:
            assert fh.read() == b"\x89PNG fake"

    def test_replacing_photo_deletes_old_file(self, app, service, customer):
        folder = os.path.join(app.config["UPLOAD_FOLDER"], "profile-photos")
        first = service.upload_photo(customer.id, b"one", "image/png").photo_url
        second = service.upload_photo(customer.id, b"two", "image/png").photo_url
        assert first != second
        assert os.listdir(folder) == [second.rsplit("/", 1)[1]]

    def test_keeps_client_file_name(self, app, service, customer):
        folder = os.path.join(app.config["UPLOAD_FOLDER"], "profile-photos")
        first = service.upload_photo(customer.id, b"one", "image/jpeg", "me.jpg").photo_url
        second = service.upload_photo(customer.id, b"two", "image/jpeg", "me.jpg").photo_url
        assert second.endswith("-me.jpg")
        assert first != second
        assert os.listdir(folder) == [second.rsplit("/", 1)[1]]

    def test_rejects_non_images(self, service, customer):
        with pytest.raises(BadRequest):
            service.upload_photo(customer.id, b"hello", "text/plain")
