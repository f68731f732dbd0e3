"""Order workflow: creation, item mutation and the status lifecycle.

Every item mutation recomputes ``Order.total`` from the whole item collection
and commits it together with the item change.
"""
from decimal import Decimal

from sqlalchemy import func, select

from errors import BadRequest, Forbidden, NotFound, guarded
from models import Order, OrderItem, OrderStatus, Product, User, money

# status -> targets that may never be reached from it
FORBIDDEN_TRANSITIONS = {
    OrderStatus.CANCELLED: set(OrderStatus.ALL),
    OrderStatus.SHIPPED: {OrderStatus.PENDING},
}

PATCHABLE_FIELDS = ("user_id", "status")

MAX_ITEM_QUANTITY = 1000


def check_status(status):
    if status not in OrderStatus.ALL:
        raise BadRequest(f"Unknown order status '{status}'")
    return status


def check_quantity(quantity):
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise BadRequest("Quantity must be an integer")
    if not 1 <= quantity <= MAX_ITEM_QUANTITY:
        raise BadRequest(f"Quantity must be between 1 and {MAX_ITEM_QUANTITY}")
    return quantity


def check_transition(current, target):
    check_status(target)
    if current == OrderStatus.CANCELLED:
        raise BadRequest("Cannot change the status of a cancelled order")
    if target in FORBIDDEN_TRANSITIONS.get(current, ()):
        raise BadRequest(f"Cannot move a {current} order back to {target}")


class OrderService:
    def __init__(self, session):
        self.session = session

    # ---------- helpers ----------

    def _active_user(self, user_id):
        user = self.session.get(User, user_id)
        if not user:
            raise NotFound("User not found")
        if not user.status:
            raise Forbidden("User is not active")
        return user

    def _product(self, product_id):
        product = self.session.get(Product, product_id)
        if not product:
            raise NotFound(f"Product {product_id} not found")
        return product

    def _locked(self, order_id):
        order = self.session.execute(
            select(Order).where(Order.id == order_id).with_for_update(of=Order)
        ).scalar_one_or_none()
        if not order:
            raise NotFound("Order not found")
        return order

    def _pending(self, order_id, action):
        order = self._locked(order_id)
        if order.status != OrderStatus.PENDING:
            raise BadRequest(f"Items can only be {action} pending orders")
        return order

    def _item(self, order, item_id):
        item = next((i for i in order.items if i.id == item_id), None)
        if not item:
            raise NotFound("Item not found in this order")
        return item

    def _newest_first(self, stmt):
        return list(self.session.scalars(stmt.order_by(Order.created_at.desc(), Order.id.desc())))

    # ---------- create / read ----------

    @guarded("Error creating the order")
    def create(self, user_id, items, status=None):
        user = self._active_user(user_id)
        if not items:
            raise BadRequest("An order needs at least one item")

        # merge repeated products into a single line
        quantities = {}
        for entry in items:
            pid = entry["product_id"]
            quantities[pid] = quantities.get(pid, 0) + check_quantity(int(entry["quantity"]))

        lines = [(self._product(pid), check_quantity(quantity)) for pid, quantity in quantities.items()]

        order = Order(user=user, status=check_status(status or OrderStatus.PENDING))
        for product, quantity in lines:
            order.items.append(OrderItem(
                product=product, name=product.name,
                quantity=quantity, price=money(product.price),
            ))
        order.total = order.items_total()

        self.session.add(order)
        self.session.commit()
        return self.find_one(order.id)

    @guarded("Error fetching the orders")
    def find_all(self):
        return self._newest_first(select(Order))

    @guarded("Error fetching the order")
    def find_one(self, order_id):
        order = self.session.get(Order, order_id)
        if not order:
            raise NotFound("Order not found")
        return order

    @guarded("Error fetching the user's orders")
    def find_by_user(self, user_id):
        if not self.session.get(User, user_id):
            raise NotFound("User not found")
        return self._newest_first(select(Order).where(Order.user_id == user_id))

    @guarded("Error fetching orders by status")
    def find_by_status(self, status):
        check_status(status)
        return self._newest_first(select(Order).where(Order.status == status))

    @guarded("Error fetching recent orders")
    def get_recent_orders(self, limit=10):
        return self._newest_first(select(Order).limit(limit))

    @guarded("Error fetching orders by date range")
    def find_by_date_range(self, start, end):
        if start > end:
            raise BadRequest("start_date must not be after end_date")
        return self._newest_first(select(Order).where(Order.created_at.between(start, end)))

    # ---------- lifecycle ----------

    @guarded("Error updating the order")
    def update(self, order_id, patch):
        order = self._locked(order_id)
        if order.status == OrderStatus.CANCELLED:
            raise BadRequest("Cannot update a cancelled order")

        unknown = set(patch) - set(PATCHABLE_FIELDS)
        if unknown:
            raise BadRequest(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

        new_user = patch.get("user_id")
        if new_user is not None and new_user != order.user_id:
            order.user = self._active_user(new_user)
        if patch.get("status") is not None:
            check_transition(order.status, patch["status"])
            order.status = patch["status"]

        self.session.commit()
        return order

    @guarded("Error updating the order status")
    def update_status(self, order_id, status):
        order = self._locked(order_id)
        check_transition(order.status, status)
        order.status = status
        self.session.commit()
        return order

    @guarded("Error cancelling the order")
    def cancel(self, order_id):
        order = self._locked(order_id)
        if order.status == OrderStatus.SHIPPED:
            raise BadRequest("Cannot cancel an order that has already shipped")
        if order.status == OrderStatus.CANCELLED:
            raise BadRequest("The order is already cancelled")
        order.status = OrderStatus.CANCELLED
        self.session.commit()
        return {"message": "Order cancelled"}

    @guarded("Error deleting the order")
    def remove(self, order_id):
        order = self._locked(order_id)
        if order.status in (OrderStatus.PAID, OrderStatus.SHIPPED):
            raise BadRequest("Paid or shipped orders cannot be deleted")
        self.session.delete(order)
        self.session.commit()
        return {"message": "Order deleted"}

    @guarded("Error computing order statistics")
    def get_stats(self):
        counts = dict(self.session.execute(
            select(Order.status, func.count(Order.id)).group_by(Order.status)
        ).all())
        sales = self.session.scalar(
            select(func.sum(Order.total)).where(Order.status == OrderStatus.PAID)
        )
        return {
            "total_orders": sum(counts.values()),
            "pending_orders": counts.get(OrderStatus.PENDING, 0),
            "paid_orders": counts.get(OrderStatus.PAID, 0),
            "cancelled_orders": counts.get(OrderStatus.CANCELLED, 0),
            "shipped_orders": counts.get(OrderStatus.SHIPPED, 0),
            "total_sales": money(sales),
        }

    # ---------- items ----------

    @guarded("Error computing the order total")
    def calculate_order_total(self, order_id):
        items = self.session.scalars(select(OrderItem).where(OrderItem.order_id == order_id)).all()
        if not items and not self.session.get(Order, order_id):
            raise NotFound("Order not found")
        return money(sum((money(i.price) * i.quantity for i in items), Decimal(0)))

    def _commit_with_total(self, order):
        self.session.flush()
        order.total = self.calculate_order_total(order.id)
        self.session.commit()

    @guarded("Error adding the item to the order")
    def add_item_to_order(self, order_id, product_id, quantity):
        order = self._pending(order_id, "added to")
        product = self._product(product_id)
        check_quantity(quantity)

        item = next((i for i in order.items if i.product_id == product.id), None)
        if item:
            item.quantity = check_quantity(item.quantity + quantity)
        else:
            item = OrderItem(product=product, name=product.name,
                             quantity=quantity, price=money(product.price))
            order.items.append(item)

        self._commit_with_total(order)
        return item

    @guarded("Error removing the item from the order")
    def remove_item_from_order(self, order_id, item_id):
        order = self._pending(order_id, "removed from")
        order.items.remove(self._item(order, item_id))
        self._commit_with_total(order)
        return {"message": "Item removed"}

    @guarded("Error updating the item quantity")
    def update_item_quantity(self, order_id, item_id, quantity):
        order = self._pending(order_id, "changed on")
        item = self._item(order, item_id)
        item.quantity = check_quantity(quantity)
        self._commit_with_total(order)
        return item
