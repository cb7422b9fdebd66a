"""Order aggregate business logic.

An order and its items are always read and returned together. Every item
write is followed, under the same per-order lock, by a recomputation of the
order total from a fresh read of the items, so the stored total is always
re-derivable and never the sole source of truth.
"""

import logging
from datetime import date, datetime, timezone
from typing import Any
from uuid import UUID

from supabase import Client

from src.api.middleware.error_handler import InvalidStateError, NotFoundError
from src.core.order_locks import OrderLockRegistry, get_order_locks
from src.core.supabase import get_supabase_client
from src.models.order import ORDER_ITEM_IMMUTABLE_FIELDS, Order, OrderItem, OrderStatus
from src.models.user import UserRole, UserStatus
from src.schemas.order import OrderCreate, OrderFilters, OrderItemCreate
from src.services.catalog_service import ServiceCatalogService
from src.services.order_policy import (
    build_status_changes,
    ensure_can_modify,
    ensure_transition_allowed,
)
from src.services.user_service import UserService

logger = logging.getLogger(__name__)

ITEM_MUTABLE_FIELDS = frozenset({"quantity", "unit_price", "note"})

# Page size used when scanning every order for total repairs
REPAIR_BATCH_SIZE = 500


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def day_start(value: date) -> str:
    """First instant of a UTC calendar day as an ISO string."""
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc).isoformat()


def day_end(value: date) -> str:
    """Last instant of a UTC calendar day as an ISO string."""
    return datetime(
        value.year, value.month, value.day, 23, 59, 59, 999999, tzinfo=timezone.utc
    ).isoformat()


def sum_item_totals(items: list[dict[str, Any]]) -> int:
    return sum(int(item["total_price"]) for item in items)


def _user_summary(user: dict[str, Any] | None) -> dict[str, Any] | None:
    if not user:
        return None
    return {
        "id": user["id"],
        "name": user.get("name") or "",
        "phone": user.get("phone") or "",
        "address": user.get("address"),
    }


class OrderService:
    """Service for creating, reading and mutating orders and their items."""

    def __init__(
        self,
        supabase_client: Client | None = None,
        catalog_service: ServiceCatalogService | None = None,
        user_service: UserService | None = None,
        locks: OrderLockRegistry | None = None,
    ) -> None:
        """Initialize order service.

        Args:
            supabase_client: Optional Supabase client for testing.
            catalog_service: Optional catalog service for testing.
            user_service: Optional user service for testing.
            locks: Optional lock registry; defaults to the process-wide one.
        """
        self._supabase_client = supabase_client
        self._catalog_service = catalog_service
        self._user_service = user_service
        self._locks = locks

    @property
    def supabase(self) -> Client:
        """Get Supabase client."""
        if self._supabase_client is None:
            self._supabase_client = get_supabase_client()
        return self._supabase_client

    @property
    def catalog(self) -> ServiceCatalogService:
        """Get catalog service, sharing this service's client."""
        if self._catalog_service is None:
            self._catalog_service = ServiceCatalogService(self.supabase)
        return self._catalog_service

    @property
    def users(self) -> UserService:
        """Get user service, sharing this service's client."""
        if self._user_service is None:
            self._user_service = UserService(self.supabase)
        return self._user_service

    @property
    def locks(self) -> OrderLockRegistry:
        """Get the order lock registry."""
        if self._locks is None:
            self._locks = get_order_locks()
        return self._locks

    # ------------------------------------------------------------------
    # Store access
    # ------------------------------------------------------------------

    async def _fetch_order(self, order_id: UUID | str) -> Order:
        response = (
            self.supabase.table("orders")
            .select("*")
            .eq("id", str(order_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            raise NotFoundError(f"Order {order_id} not found.")
        return response.data[0]

    async def _fetch_items(self, order_id: UUID | str) -> list[OrderItem]:
        """Read the current items of one order, oldest first."""
        response = (
            self.supabase.table("order_items")
            .select("*")
            .eq("order_id", str(order_id))
            .order("created_at")
            .execute()
        )
        return response.data or []

    async def _fetch_items_for_orders(self, order_ids: list[str]) -> dict[str, list[dict[str, Any]]]:
        grouped: dict[str, list[dict[str, Any]]] = {order_id: [] for order_id in order_ids}
        if not order_ids:
            return grouped

        response = (
            self.supabase.table("order_items")
            .select("*")
            .in_("order_id", order_ids)
            .order("created_at")
            .execute()
        )
        for item in response.data or []:
            grouped.setdefault(str(item["order_id"]), []).append(item)
        return grouped

    async def _fetch_item(self, order_id: UUID | str, item_id: UUID | str) -> OrderItem:
        """Read one item, scoped to its order.

        An item id that exists under a different order is reported as not
        found, so item ids never leak across orders.
        """
        response = (
            self.supabase.table("order_items")
            .select("*")
            .eq("id", str(item_id))
            .eq("order_id", str(order_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            raise NotFoundError(f"Item {item_id} not found in order {order_id}.")
        return response.data[0]

    async def _write_total(self, order_id: UUID | str, total: int) -> None:
        (
            self.supabase.table("orders")
            .update({"total_price": total, "updated_at": _now_iso()})
            .eq("id", str(order_id))
            .execute()
        )

    async def _recompute_total(self, order_id: UUID | str) -> tuple[int, list[dict[str, Any]]]:
        """Recompute and persist an order total from its current items.

        Must be called while holding the order's lock.

        Returns:
            Tuple of (new total, items the total was computed from).
        """
        items = await self._fetch_items(order_id)
        total = sum_item_totals(items)
        await self._write_total(order_id, total)
        return total, items

    async def _get_active_service(self, service_id: UUID | str) -> dict[str, Any]:
        """Read a catalog entry that may be used on a line.

        Raises:
            NotFoundError: If the service does not exist.
            InvalidStateError: If the service is inactive.
        """
        service = await self.catalog.get_service(service_id)
        if not service.get("active", False):
            raise InvalidStateError(f"Service {service['name']} is not available.")
        return service

    @staticmethod
    def _build_item_row(order_id: str | None, service: dict[str, Any], line: OrderItemCreate) -> dict[str, Any]:
        """Build an order_items row with catalog snapshots and derived total."""
        unit_price = line.unit_price if line.unit_price is not None else int(service["price"])
        row = {
            "service_id": str(service["id"]),
            "service_name": service["name"],
            "service_category": service["category"],
            "service_unit": service["unit"],
            "service_price": int(service["price"]),
            "quantity": line.quantity,
            "unit_price": unit_price,
            "total_price": line.quantity * unit_price,
            "note": line.note,
        }
        if order_id is not None:
            row["order_id"] = order_id
        return row

    # ------------------------------------------------------------------
    # Aggregate assembly
    # ------------------------------------------------------------------

    async def _assemble(
        self,
        orders: list[dict[str, Any]],
        items_by_order: dict[str, list[dict[str, Any]]],
    ) -> list[dict[str, Any]]:
        """Join orders with their items and customer/staff display fields."""
        party_ids: list[str] = []
        for order in orders:
            party_ids.append(str(order["customer_id"]))
            party_ids.append(str(order["created_by"]))
        parties = await self.users.get_users_by_ids(party_ids)

        return [
            {
                **order,
                "items": items_by_order.get(str(order["id"]), []),
                "customer": _user_summary(parties.get(str(order["customer_id"]))),
                "staff": _user_summary(parties.get(str(order["created_by"]))),
            }
            for order in orders
        ]

    async def _load_aggregate(self, order_id: UUID | str) -> dict[str, Any]:
        """Read an order with items without repairing it.

        Safe to call while holding the order's lock.
        """
        order = await self._fetch_order(order_id)
        items = await self._fetch_items(order_id)
        aggregates = await self._assemble([order], {str(order["id"]): items})
        return aggregates[0]

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def _resolve_customer(self, data: OrderCreate) -> dict[str, Any]:
        if data.customer_id is not None:
            customer = await self.users.get_user(data.customer_id)
            if not customer:
                raise NotFoundError(f"Customer {data.customer_id} not found.")
            if customer.get("role") != UserRole.CUSTOMER.value:
                raise InvalidStateError("Orders can only be placed for customer accounts.")
        else:
            customer = await self.users.find_or_create_customer(
                phone=data.customer_phone or "",
                name=data.customer_name or "",
                address=data.customer_address,
            )

        if customer.get("status") == UserStatus.SUSPENDED.value:
            raise InvalidStateError("Customer account is suspended.")
        return customer

    async def create_order(
        self,
        data: OrderCreate,
        created_by: UUID | str,
        role: UserRole | str,
    ) -> dict[str, Any]:
        """Create an order with its items for a customer.

        Every line is validated against the catalog before anything is
        written. The order row is then inserted with the summed total and
        all items are inserted in one request. If the item insert fails the
        order row is removed again, so no partial order is left behind.

        Args:
            data: Validated order creation request.
            created_by: Identity creating the order.
            role: Role of the creating identity.

        Returns:
            dict: The order joined with items, customer and staff summaries.

        Raises:
            AuthorizationError: If the role may not create orders.
            NotFoundError: If a service or the customer does not exist.
            InvalidStateError: If a service is inactive or the customer reference is not a customer.
        """
        ensure_can_modify(role, {"status": OrderStatus.PENDING})

        # Validate all lines before touching the store
        rows: list[dict[str, Any]] = []
        for line in data.items:
            service = await self._get_active_service(line.service_id)
            rows.append(self._build_item_row(None, service, line))

        customer = await self._resolve_customer(data)
        total = sum_item_totals(rows)

        order_response = (
            self.supabase.table("orders")
            .insert(
                {
                    "customer_id": str(customer["id"]),
                    "created_by": str(created_by),
                    "status": OrderStatus.PENDING.value,
                    "total_price": total,
                    "note": data.note,
                }
            )
            .execute()
        )
        order = order_response.data[0]
        order_id = str(order["id"])

        for row in rows:
            row["order_id"] = order_id

        try:
            self.supabase.table("order_items").insert(rows).execute()
        except Exception:
            logger.error("Failed to insert items for order %s, removing order", order_id)
            self.supabase.table("order_items").delete().eq("order_id", order_id).execute()
            self.supabase.table("orders").delete().eq("id", order_id).execute()
            raise

        logger.info(
            "Created order %s for customer %s with %d items, total=%d",
            order_id,
            customer["id"],
            len(rows),
            total,
        )
        return await self._load_aggregate(order_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_order(self, order_id: UUID | str) -> dict[str, Any]:
        """Get an order with its items.

        A stored total that disagrees with the items (left behind by an
        interrupted write in another process) is repaired before returning.

        Raises:
            NotFoundError: If the order does not exist.
        """
        order = await self._fetch_order(order_id)
        items = await self._fetch_items(order_id)

        if int(order["total_price"]) != sum_item_totals(items):
            async with self.locks.hold(order_id):
                order = await self._fetch_order(order_id)
                stored = int(order["total_price"])
                total, items = await self._recompute_total(order_id)
                if stored != total:
                    logger.warning(
                        "Repaired total of order %s: stored=%d items=%d",
                        order_id,
                        stored,
                        total,
                    )
                order["total_price"] = total

        aggregates = await self._assemble([order], {str(order["id"]): items})
        return aggregates[0]

    async def get_customer_order(self, order_id: UUID | str, customer_id: UUID | str) -> dict[str, Any]:
        """Get an order only if it belongs to the given customer.

        Raises:
            NotFoundError: If the order does not exist or belongs to someone else.
        """
        order = await self.get_order(order_id)
        if str(order["customer_id"]) != str(customer_id):
            raise NotFoundError(f"Order {order_id} not found.")
        return order

    async def list_orders(
        self,
        filters: OrderFilters | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[dict[str, Any]], int]:
        """List orders newest first with their items.

        Args:
            filters: Optional filters. An unknown customer_phone yields an empty page.
            page: 1-based page number.
            limit: Page size.

        Returns:
            Tuple of (orders on this page, total matching count).
        """
        filters = filters or OrderFilters()

        customer_id = filters.customer_id
        if filters.customer_phone:
            customer = await self.users.find_by_phone(filters.customer_phone)
            if not customer:
                return [], 0
            if customer_id is not None and str(customer_id) != str(customer["id"]):
                return [], 0
            customer_id = customer["id"]

        query = self.supabase.table("orders").select("*", count="exact")

        if filters.status is not None:
            query = query.eq("status", OrderStatus(filters.status).value)
        if customer_id is not None:
            query = query.eq("customer_id", str(customer_id))
        if filters.created_by is not None:
            query = query.eq("created_by", str(filters.created_by))
        if filters.start_date is not None:
            query = query.gte("created_at", day_start(filters.start_date))
        if filters.end_date is not None:
            query = query.lte("created_at", day_end(filters.end_date))

        offset = (page - 1) * limit
        response = query.order("created_at", desc=True).range(offset, offset + limit - 1).execute()

        orders = response.data or []
        total = response.count if response.count is not None else len(orders)

        items_by_order = await self._fetch_items_for_orders([str(o["id"]) for o in orders])
        return await self._assemble(orders, items_by_order), total

    async def list_orders_by_customer(
        self,
        customer_id: UUID | str,
        status: OrderStatus | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[dict[str, Any]], int]:
        """List one customer's orders, newest first."""
        filters = OrderFilters(customer_id=customer_id, status=status)
        return await self.list_orders(filters, page=page, limit=limit)

    async def list_orders_by_staff(
        self,
        staff_id: UUID | str,
        status: OrderStatus | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[dict[str, Any]], int]:
        """List orders created by one staff identity, newest first."""
        filters = OrderFilters(created_by=staff_id, status=status)
        return await self.list_orders(filters, page=page, limit=limit)

    async def get_customer_history(self, customer_id: UUID | str) -> dict[str, Any]:
        """Get a customer record with all of their orders and spending totals.

        total_spent counts completed orders only, as revenue does in the
        order statistics.

        Raises:
            NotFoundError: If no customer has this id.
        """
        customer = await self.users.get_customer(customer_id)

        response = (
            self.supabase.table("orders")
            .select("*")
            .eq("customer_id", str(customer_id))
            .order("created_at", desc=True)
            .execute()
        )
        orders = response.data or []
        items_by_order = await self._fetch_items_for_orders([str(o["id"]) for o in orders])

        completed = [o for o in orders if o["status"] == OrderStatus.COMPLETED.value]
        return {
            **customer,
            "stats": {
                "total_orders": len(orders),
                "completed_orders": len(completed),
                "total_spent": sum(int(o["total_price"]) for o in completed),
            },
            "order_history": await self._assemble(orders, items_by_order),
        }

    async def search_orders_by_phone(
        self,
        phone: str,
        status: OrderStatus | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[dict[str, Any] | None, list[dict[str, Any]], int]:
        """Find a customer by phone and list their orders.

        Returns:
            Tuple of (customer summary or None, orders, total count).
        """
        customer = await self.users.find_by_phone(phone)
        if not customer:
            return None, [], 0

        orders, total = await self.list_orders_by_customer(
            customer["id"], status=status, page=page, limit=limit
        )
        return _user_summary(customer), orders, total

    # ------------------------------------------------------------------
    # Order mutations
    # ------------------------------------------------------------------

    async def update_order_note(
        self,
        order_id: UUID | str,
        note: str | None,
        role: UserRole | str,
    ) -> dict[str, Any]:
        """Replace an order's note.

        Raises:
            NotFoundError: If the order does not exist.
            AuthorizationError: If the role may not modify the order.
        """
        async with self.locks.hold(order_id):
            order = await self._fetch_order(order_id)
            ensure_can_modify(role, order)

            (
                self.supabase.table("orders")
                .update({"note": note, "updated_at": _now_iso()})
                .eq("id", str(order_id))
                .execute()
            )
            return await self._load_aggregate(order_id)

    async def update_order_status(
        self,
        order_id: UUID | str,
        status: OrderStatus | str,
        role: UserRole | str,
    ) -> dict[str, Any]:
        """Move an order to a new status.

        Raises:
            NotFoundError: If the order does not exist.
            AuthorizationError: If the role may not modify the order.
            InvalidStateError: If the transition is not allowed.
        """
        target = OrderStatus(status)

        async with self.locks.hold(order_id):
            order = await self._fetch_order(order_id)
            ensure_can_modify(role, order)
            ensure_transition_allowed(order["status"], target)

            changes = build_status_changes(order, target)
            if changes:
                (
                    self.supabase.table("orders")
                    .update(changes)
                    .eq("id", str(order_id))
                    .execute()
                )
                logger.info(
                    "Order %s status changed %s -> %s",
                    order_id,
                    order["status"],
                    target.value,
                )
            return await self._load_aggregate(order_id)

    async def delete_order(self, order_id: UUID | str, role: UserRole | str) -> None:
        """Delete an order and all of its items.

        Raises:
            NotFoundError: If the order does not exist.
            AuthorizationError: If the role may not modify the order.
        """
        async with self.locks.hold(order_id):
            order = await self._fetch_order(order_id)
            ensure_can_modify(role, order)

            self.supabase.table("order_items").delete().eq("order_id", str(order_id)).execute()
            self.supabase.table("orders").delete().eq("id", str(order_id)).execute()

        logger.info("Deleted order %s (status=%s)", order_id, order["status"])

    # ------------------------------------------------------------------
    # Item mutations
    # ------------------------------------------------------------------

    async def add_order_item(
        self,
        order_id: UUID | str,
        line: OrderItemCreate,
        role: UserRole | str,
    ) -> dict[str, Any]:
        """Append a line to an order and recompute its total.

        Raises:
            NotFoundError: If the order or service does not exist.
            AuthorizationError: If the role may not modify the order.
            InvalidStateError: If the service is inactive.
        """
        async with self.locks.hold(order_id):
            order = await self._fetch_order(order_id)
            ensure_can_modify(role, order)

            service = await self._get_active_service(line.service_id)
            row = self._build_item_row(str(order["id"]), service, line)
            self.supabase.table("order_items").insert(row).execute()

            total, _ = await self._recompute_total(order_id)
            logger.info("Added %s x%d to order %s, total=%d", service["name"], line.quantity, order_id, total)
            return await self._load_aggregate(order_id)

    async def update_order_item(
        self,
        order_id: UUID | str,
        item_id: UUID | str,
        data: dict[str, Any],
        role: UserRole | str,
    ) -> dict[str, Any]:
        """Update quantity, unit_price and/or note of a line.

        Identity fields in data are ignored. The line total is recomputed
        whenever quantity or unit_price is given, using the stored value for
        whichever is omitted. Re-pricing a line requires its service to still
        be available in the catalog.

        Raises:
            NotFoundError: If the order or item does not exist, or the item belongs to another order.
            AuthorizationError: If the role may not modify the order.
            InvalidStateError: If the line's service is no longer active.
        """
        changes = {
            key: value
            for key, value in data.items()
            if key in ITEM_MUTABLE_FIELDS and key not in ORDER_ITEM_IMMUTABLE_FIELDS
        }

        async with self.locks.hold(order_id):
            order = await self._fetch_order(order_id)
            ensure_can_modify(role, order)
            item = await self._fetch_item(order_id, item_id)

            if not changes:
                return await self._load_aggregate(order_id)

            if "quantity" in changes or "unit_price" in changes:
                await self._get_active_service(item["service_id"])
                quantity = int(changes.get("quantity", item["quantity"]))
                unit_price = int(changes.get("unit_price", item["unit_price"]))
                changes["total_price"] = quantity * unit_price

            changes["updated_at"] = _now_iso()
            (
                self.supabase.table("order_items")
                .update(changes)
                .eq("id", str(item_id))
                .eq("order_id", str(order_id))
                .execute()
            )

            await self._recompute_total(order_id)
            return await self._load_aggregate(order_id)

    async def delete_order_item(
        self,
        order_id: UUID | str,
        item_id: UUID | str,
        role: UserRole | str,
    ) -> dict[str, Any]:
        """Remove a line from an order and recompute its total.

        The last remaining line cannot be removed; delete the order instead.

        Raises:
            NotFoundError: If the order or item does not exist, or the item belongs to another order.
            AuthorizationError: If the role may not modify the order.
            InvalidStateError: If this is the order's only line.
        """
        async with self.locks.hold(order_id):
            order = await self._fetch_order(order_id)
            ensure_can_modify(role, order)
            await self._fetch_item(order_id, item_id)

            items = await self._fetch_items(order_id)
            if len(items) <= 1:
                raise InvalidStateError(
                    "Cannot remove the last item of an order. Delete the order instead."
                )

            (
                self.supabase.table("order_items")
                .delete()
                .eq("id", str(item_id))
                .eq("order_id", str(order_id))
                .execute()
            )

            total, _ = await self._recompute_total(order_id)
            logger.info("Removed item %s from order %s, total=%d", item_id, order_id, total)
            return await self._load_aggregate(order_id)

    # ------------------------------------------------------------------
    # Total maintenance
    # ------------------------------------------------------------------

    async def recalculate_order_total(self, order_id: UUID | str) -> dict[str, Any]:
        """Recompute and persist one order's total from its items.

        Idempotent: repeating it without intervening item changes leaves the
        total unchanged.

        Raises:
            NotFoundError: If the order does not exist.
        """
        async with self.locks.hold(order_id):
            order = await self._fetch_order(order_id)
            total, _ = await self._recompute_total(order_id)
            if int(order["total_price"]) != total:
                logger.warning(
                    "Recalculated total of order %s: %d -> %d",
                    order_id,
                    order["total_price"],
                    total,
                )
            return await self._load_aggregate(order_id)

    async def recalculate_all_totals(self) -> dict[str, int]:
        """Check every order and repair totals that disagree with their items.

        Returns:
            dict: Counts of orders checked and corrected.
        """
        checked = 0
        corrected = 0
        offset = 0

        while True:
            response = (
                self.supabase.table("orders")
                .select("id, total_price")
                .order("created_at")
                .range(offset, offset + REPAIR_BATCH_SIZE - 1)
                .execute()
            )
            batch = response.data or []

            for row in batch:
                checked += 1
                async with self.locks.hold(row["id"]):
                    try:
                        current = await self._fetch_order(row["id"])
                    except NotFoundError:
                        # Deleted since the page was read
                        continue
                    items = await self._fetch_items(row["id"])
                    total = sum_item_totals(items)
                    if int(current["total_price"]) != total:
                        await self._write_total(row["id"], total)
                        corrected += 1
                        logger.warning(
                            "Repaired total of order %s: %d -> %d",
                            row["id"],
                            current["total_price"],
                            total,
                        )

            if len(batch) < REPAIR_BATCH_SIZE:
                break
            offset += REPAIR_BATCH_SIZE

        logger.info("Checked %d orders, corrected %d totals", checked, corrected)
        return {"checked": checked, "corrected": corrected}


def get_order_service() -> OrderService:
    """Get order service instance.

    Returns:
        OrderService: Order service instance.
    """
    return OrderService()
