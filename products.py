from sqlalchemy import func, select

from errors import BadRequest, Conflict, NotFound, guarded
from models import Product, money

SORTABLE = {
    "name": Product.name,
    "price": Product.price,
    "stock": Product.stock,
    "created_at": Product.created_at,
}
EDITABLE_FIELDS = ("name", "description", "price", "stock", "image_url")


def _check_amounts(data):
    if data.get("price") is not None and money(data["price"]) < 0:
        raise BadRequest("Price cannot be negative")
    if data.get("stock") is not None and int(data["stock"]) < 0:
        raise BadRequest("Stock cannot be negative")


def _apply_filters(stmt, filters):
    f = filters or {}
    if f.get("name"):
        stmt = stmt.where(Product.name.ilike(f"%{f['name']}%"))
    if f.get("description"):
        stmt = stmt.where(Product.description.ilike(f"%{f['description']}%"))
    if f.get("price_min") is not None:
        stmt = stmt.where(Product.price >= f["price_min"])
    if f.get("price_max") is not None:
        stmt = stmt.where(Product.price <= f["price_max"])
    if f.get("stock_min") is not None:
        stmt = stmt.where(Product.stock >= f["stock_min"])
    if f.get("stock_max") is not None:
        stmt = stmt.where(Product.stock <= f["stock_max"])
    if f.get("available") is not None:
        stmt = stmt.where(Product.stock > 0 if f["available"] else Product.stock == 0)
    if f.get("created_from") is not None:
        stmt = stmt.where(Product.created_at >= f["created_from"])
    if f.get("created_to") is not None:
        stmt = stmt.where(Product.created_at <= f["created_to"])
    return stmt


class ProductService:
    def __init__(self, session):
        self.session = session

    def _name_taken(self, name, exclude_id=None):
        existing = self.session.scalar(select(Product).where(Product.name == name))
        return existing is not None and existing.id != exclude_id

    @guarded("Error creating the product")
    def create(self, data):
        if not data.get("name"):
            raise BadRequest("Product name is required")
        if data.get("price") is None:
            raise BadRequest("Product price is required")
        if self._name_taken(data["name"]):
            raise Conflict("A product with that name already exists")
        _check_amounts(data)

        product = Product(
            name=data["name"],
            description=data.get("description") or "",
            price=money(data["price"]),
            stock=int(data.get("stock") or 0),
            image_url=data.get("image_url"),
        )
        self.session.add(product)
        self.session.commit()
        return product

    @guarded("Error fetching the products")
    def find_all(self, filters=None):
        f = filters or {}
        stmt = _apply_filters(select(Product), f)

        column = SORTABLE.get(f.get("sort_by"))
        if column is not None:
            desc = str(f.get("sort_dir", "asc")).lower() == "desc"
            stmt = stmt.order_by(column.desc() if desc else column.asc(), Product.id)
        else:
            stmt = stmt.order_by(Product.created_at.desc(), Product.id.desc())

        if f.get("limit"):
            stmt = stmt.limit(f["limit"])
        if f.get("offset"):
            stmt = stmt.offset(f["offset"])
        return list(self.session.scalars(stmt))

    @guarded("Error fetching the product")
    def find_one(self, product_id):
        product = self.session.get(Product, product_id)
        if not product:
            raise NotFound("Product not found")
        return product

    @guarded("Error updating the product")
    def update(self, product_id, data):
        product = self.find_one(product_id)
        if data.get("name") and data["name"] != product.name and self._name_taken(data["name"], product.id):
            raise Conflict("A product with that name already exists")
        _check_amounts(data)

        for field in EDITABLE_FIELDS:
            if field in data and data[field] is not None:
                value = data[field]
                if field == "price":
                    value = money(value)
                elif field == "stock":
                    value = int(value)
                setattr(product, field, value)
        self.session.commit()
        return product

    @guarded("Error deleting the product")
    def remove(self, product_id):
        product = self.find_one(product_id)
        self.session.delete(product)
        self.session.commit()
        return {"message": "Product deleted"}

    @guarded("Error searching products by name")
    def find_by_name(self, term):
        stmt = (select(Product)
                .where(Product.name.ilike(f"%{term}%"))
                .order_by(Product.created_at.desc(), Product.id.desc()))
        return list(self.session.scalars(stmt))

    @guarded("Error fetching low-stock products")
    def find_low_stock(self, threshold=10):
        stmt = select(Product).where(Product.stock <= threshold).order_by(Product.stock.asc(), Product.id)
        return list(self.session.scalars(stmt))

    @guarded("Error updating the stock")
    def update_stock(self, product_id, stock):
        if stock < 0:
            raise BadRequest("Stock cannot be negative")
        product = self.find_one(product_id)
        product.stock = stock
        self.session.commit()
        return product

    @guarded("Error counting products")
    def count(self, filters=None):
        stmt = _apply_filters(select(func.count(Product.id)), filters)
        return self.session.scalar(stmt)
