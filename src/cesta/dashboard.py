"""Monthly spend aggregation for the dashboard."""

from collections import defaultdict
from datetime import date, timedelta

from .category import DEFAULT_CATEGORY, classify_product
from .data_store import DataStoreProtocol
from .models import CategorySpend, DashboardData


def month_bounds(today: date) -> tuple[date, date, date]:
    """First day of the previous, current and next calendar month."""
    current_start = today.replace(day=1)
    last_start = (current_start - timedelta(days=1)).replace(day=1)
    next_start = (current_start + timedelta(days=32)).replace(day=1)
    return last_start, current_start, next_start


class DashboardAggregator:
    """Rolls price observations up into current vs previous month spend."""

    def __init__(
        self,
        data_store: DataStoreProtocol,
        budget_limit: float | None = None,
        default_category: str = DEFAULT_CATEGORY,
    ):
        self.data_store = data_store
        self.budget_limit = budget_limit
        self.default_category = default_category

    def aggregate(self, today: date | None = None) -> DashboardData:
        """Build dashboard totals relative to ``today`` (defaults to the local date).

        An observation dated on the first of the current month counts as
        current. Previous-month observations fall on or after the previous
        month start and strictly before the current month start.
        """
        today = today or date.today()
        last_start, current_start, next_start = month_bounds(today)

        products = {product.id: product for product in self.data_store.list_products()}

        current_total = 0.0
        last_total = 0.0
        category_totals: dict[str, float] = defaultdict(float)
        category_counts: dict[str, int] = defaultdict(int)

        for observation in self.data_store.list_observations():
            recorded = observation.date_recorded
            if current_start <= recorded < next_start:
                current_total += observation.price
                product = products.get(observation.product_id)
                if product is not None and product.category:
                    category = product.category
                else:
                    category = classify_product(
                        product.name if product else "", default=self.default_category
                    )
                category_totals[category] += observation.price
                category_counts[category] += 1
            elif last_start <= recorded < current_start:
                last_total += observation.price

        category_spend = []
        for category, amount in sorted(category_totals.items(), key=lambda x: x[1], reverse=True):
            pct = (amount / current_total * 100) if current_total > 0 else 0
            category_spend.append(
                CategorySpend(
                    category=category,
                    amount=round(amount, 2),
                    percentage=round(pct, 1),
                    observation_count=category_counts[category],
                )
            )

        month_over_month_pct = None
        if last_total > 0:
            month_over_month_pct = round((current_total - last_total) / last_total * 100, 1)

        budget_remaining = None
        budget_percentage = None
        if self.budget_limit is not None and self.budget_limit > 0:
            budget_remaining = round(self.budget_limit - current_total, 2)
            budget_percentage = round(current_total / self.budget_limit * 100, 1)

        return DashboardData(
            month=current_start.strftime("%Y-%m"),
            current_month_start=current_start,
            last_month_start=last_start,
            current_month_total=round(current_total, 2),
            last_month_total=round(last_total, 2),
            month_over_month_pct=month_over_month_pct,
            category_spend=category_spend,
            budget_limit=self.budget_limit if self.budget_limit else None,
            budget_remaining=budget_remaining,
            budget_percentage=budget_percentage,
            is_demo=not self.data_store.is_configured,
        )
