"""Order reporting: read-only aggregates over committed orders."""

import logging
from collections import defaultdict
from datetime import date, datetime
from typing import Any

from supabase import Client

from src.core.config import get_settings
from src.core.supabase import get_supabase_client
from src.models.order import OrderStatus
from src.services.order_service import day_end, day_start
from src.services.user_service import UserService

logger = logging.getLogger(__name__)


def _created_day(value: str | datetime) -> date:
    """UTC calendar day of a created_at value."""
    if isinstance(value, datetime):
        return value.date()
    return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()


class OrderStatsService:
    """Computes order statistics for the admin dashboard."""

    def __init__(
        self,
        supabase_client: Client | None = None,
        user_service: UserService | None = None,
    ) -> None:
        """Initialize stats service.

        Args:
            supabase_client: Optional Supabase client for testing.
            user_service: Optional user service for testing.
        """
        self._supabase_client = supabase_client
        self._user_service = user_service
        self.settings = get_settings()

    @property
    def supabase(self) -> Client:
        """Get Supabase client."""
        if self._supabase_client is None:
            self._supabase_client = get_supabase_client()
        return self._supabase_client

    @property
    def users(self) -> UserService:
        """Get user service."""
        if self._user_service is None:
            self._user_service = UserService(self.supabase)
        return self._user_service

    async def _fetch_orders(
        self,
        start_date: date | None,
        end_date: date | None,
    ) -> list[dict[str, Any]]:
        """Read all orders in the range, one page at a time."""
        page_size = self.settings.stats_page_size
        orders: list[dict[str, Any]] = []
        offset = 0

        while True:
            query = self.supabase.table("orders").select(
                "id, customer_id, status, total_price, created_at"
            )
            if start_date is not None:
                query = query.gte("created_at", day_start(start_date))
            if end_date is not None:
                query = query.lte("created_at", day_end(end_date))

            response = query.order("created_at", desc=True).range(offset, offset + page_size - 1).execute()
            batch = response.data or []
            orders.extend(batch)

            if len(batch) < page_size:
                break
            offset += page_size

        return orders

    async def get_order_stats(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> dict[str, Any]:
        """Aggregate orders created within an optional date range.

        Revenue, daily buckets and top customers only count completed
        orders. An empty range yields zero aggregates.

        Args:
            start_date: First day included.
            end_date: Last day included, through the end of that day.

        Returns:
            dict: by_status, revenue, daily and top_customers.
        """
        orders = await self._fetch_orders(start_date, end_date)

        status_counts: dict[str, int] = defaultdict(int)
        status_revenue: dict[str, int] = defaultdict(int)
        for order in orders:
            status_counts[order["status"]] += 1
            status_revenue[order["status"]] += int(order["total_price"])

        by_status = [
            {
                "status": status.value,
                "count": status_counts.get(status.value, 0),
                "total_revenue": status_revenue.get(status.value, 0),
            }
            for status in OrderStatus
        ]

        completed = [o for o in orders if o["status"] == OrderStatus.COMPLETED.value]
        total_revenue = sum(int(o["total_price"]) for o in completed)
        total_orders = len(completed)
        revenue = {
            "total_revenue": total_revenue,
            "total_orders": total_orders,
            "avg_order_value": total_revenue / total_orders if total_orders else 0.0,
        }

        daily_buckets: dict[date, dict[str, int]] = defaultdict(lambda: {"count": 0, "revenue": 0})
        for order in completed:
            bucket = daily_buckets[_created_day(order["created_at"])]
            bucket["count"] += 1
            bucket["revenue"] += int(order["total_price"])

        daily = [
            {"date": day, **daily_buckets[day]}
            for day in sorted(daily_buckets, reverse=True)[: self.settings.stats_daily_limit]
        ]

        top_customers = await self._top_customers(completed)

        logger.debug(
            "Computed stats over %d orders (%d completed) from %s to %s",
            len(orders),
            total_orders,
            start_date,
            end_date,
        )
        return {
            "by_status": by_status,
            "revenue": revenue,
            "daily": daily,
            "top_customers": top_customers,
        }

    async def _top_customers(self, completed: list[dict[str, Any]]) -> list[dict[str, Any]]:
        spend: dict[str, dict[str, int]] = defaultdict(lambda: {"total_orders": 0, "total_spent": 0})
        for order in completed:
            entry = spend[str(order["customer_id"])]
            entry["total_orders"] += 1
            entry["total_spent"] += int(order["total_price"])

        ranked = sorted(spend.items(), key=lambda kv: kv[1]["total_spent"], reverse=True)
        users = await self.users.get_users_by_ids([customer_id for customer_id, _ in ranked])

        result = []
        for customer_id, totals in ranked:
            user = users.get(customer_id)
            if not user:
                continue
            result.append(
                {
                    "customer_id": customer_id,
                    "name": user.get("name") or "",
                    "phone": user.get("phone") or "",
                    **totals,
                }
            )
            if len(result) == self.settings.stats_top_customers_limit:
                break
        return result


def get_order_stats_service() -> OrderStatsService:
    """Get order stats service instance.

    Returns:
        OrderStatsService: Stats service instance.
    """
    return OrderStatsService()
