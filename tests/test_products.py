"""
Tests for product CRUD and search helpers.
"""
from decimal import Decimal

import pytest
from werkzeug.exceptions import BadRequest, Conflict, NotFound

from models import Product, db
from products import ProductService


@pytest.fixture
def service(app):
    return ProductService(db.session)


class TestProducts:

    def test_create(self, service):
        product = service.create({"name": "Cake", "price": Decimal("12.5"), "stock": 4})
        assert product.id
        assert product.price == Decimal("12.50")
        assert product.to_dict()["price"] == "12.50"

    def test_duplicate_name_is_conflict(self, service, products):
        with pytest.raises(Conflict):
            service.create({"name": "Party Bag", "price": Decimal("1")})
        assert db.session.query(Product).count() == 2

    def test_duplicate_name_racing_past_the_check(self, service, products, monkeypatch):
        # a concurrent insert that lands after the name check
        monkeypatch.setattr(service, "_name_taken", lambda *args, **kwargs: False)
        with pytest.raises(Conflict):
            service.create({"name": "Party Bag", "price": Decimal("1")})
        assert db.session.query(Product).count() == 2

    @pytest.mark.parametrize("data", [
        {"name": "Bad", "price": Decimal("-1")},
        {"name": "Bad", "price": Decimal("1"), "stock": -2},
        {"price": Decimal("1")},
    ])
    def test_create_rejects_invalid(self, service, data):
        with pytest.raises(BadRequest):
            service.create(data)

    def test_update_and_rename_conflict(self, service, products):
        a, b = products
        assert service.update(a.id, {"price": Decimal("11"), "stock": 7}).price == Decimal("11.00")
        with pytest.raises(Conflict):
            service.update(a.id, {"name": "Balloon"})
        assert service.update(b.id, {"name": "Balloon"}).name == "Balloon"

    def test_remove(self, service, products):
        a, _ = products
        service.remove(a.id)
        with pytest.raises(NotFound):
            service.find_one(a.id)

    def test_filters_and_count(self, service, products):
        a, b = products
        assert [p.id for p in service.find_all({"name": "party"})] == [a.id]
        assert [p.id for p in service.find_all({"price_max": Decimal("6")})] == [b.id]
        assert [p.id for p in service.find_all({"sort_by": "price", "sort_dir": "desc"})] == [a.id, b.id]
        assert [p.id for p in service.find_all({"sort_by": "price", "limit": 1, "offset": 1})] == [a.id]
        assert service.count({"stock_min": 10}) == 1
        assert service.count() == 2

    def test_available_filter(self, service, products):
        _, b = products
        service.update_stock(b.id, 0)
        assert [p.name for p in service.find_all({"available": True})] == ["Party Bag"]
        assert [p.name for p in service.find_all({"available": False})] == ["Balloon"]

    def test_search_and_low_stock(self, service, products):
        _, b = products
        assert [p.id for p in service.find_by_name("ball")] == [b.id]
        assert [p.id for p in service.find_low_stock()] == [b.id]
        assert len(service.find_low_stock(100)) == 2

    def test_negative_stock_update(self, service, products):
        with pytest.raises(BadRequest):
            service.update_stock(products[0].id, -1)
