"""Repository for the Order aggregate."""

from merch.domain import merch
from merch.order.order import Order

PAGE_SIZE = 100


@merch.repository(part_of=Order)
class OrderRepository:
    """Order lookups beyond get-by-id."""

    def find_by_provider_order_id(self, provider_order_id: str) -> Order | None:
        return self._dao.query.filter(provider_order_id=provider_order_id).all().first

    def find_by_order_number(self, order_number: str) -> Order | None:
        return self._dao.query.filter(order_number=order_number).all().first

    def find_for_creator(self, creator_id: str) -> list[Order]:
        return self._find_all(creator_id=str(creator_id))

    def find_credited_for_creator(self, creator_id: str) -> list[Order]:
        """Orders whose commission has been booked to the creator's ledger."""
        return self._find_all(creator_id=str(creator_id), commission_credited=True)

    def _find_all(self, **filters) -> list[Order]:
        """Every matching order, read page by page past the DAO's default limit."""
        query = self._dao.query.filter(**filters).order_by("created_at")
        orders: list[Order] = []
        offset = 0
        while True:
            items = query.offset(offset).limit(PAGE_SIZE).all().items
            orders.extend(items)
            if len(items) < PAGE_SIZE:
                return orders
            offset += PAGE_SIZE
