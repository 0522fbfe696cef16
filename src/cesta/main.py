"""CLI entry point for cesta."""

from datetime import datetime
from pathlib import Path
from typing import Annotated
from uuid import UUID

import typer

from .catalog import CatalogManager
from .category import DEFAULT_CATEGORY
from .comparison import ListComparator
from .config import ConfigManager
from .dashboard import DashboardAggregator
from .data_store import BackendType, DataStoreProtocol, StorageError, create_data_store
from .ingestion import ScanIngestor
from .list_manager import EntryNotFoundError, ListManager
from .logging_config import get_logger
from .matching import AliasNotFoundError, ProductNotFoundError, ProductResolver
from .migrate import MigrationError, migrate
from .models import ComparisonStatus
from .output_formatter import OutputFormatter
from .price_ledger import ObservationNotFoundError, PriceLedger
from .recognition import (
    ReceiptRecognizer,
    RecognitionError,
    RecognitionNotConfiguredError,
    VoiceListParser,
    user_message,
)

log = get_logger(__name__)

app = typer.Typer(
    name="cesta",
    help="Shopping list and supermarket price comparison",
    no_args_is_help=True,
)

# Global state for formatter, config and store (set by callback)
formatter: OutputFormatter = OutputFormatter()
config: ConfigManager | None = None
data_store: DataStoreProtocol | None = None
data_dir_override: Path | None = None

DateOption = Annotated[
    datetime | None,
    typer.Option("--date", "-d", formats=["%Y-%m-%d"], help="Date (YYYY-MM-DD)"),
]


def get_config() -> ConfigManager:
    """Get or create ConfigManager instance."""
    global config
    if config is None:
        config = ConfigManager()
    return config


def get_data_store() -> DataStoreProtocol:
    """Get or create the data store using config values."""
    global data_store
    if data_store is None:
        cfg = get_config()
        data_store = create_data_store(
            backend=BackendType(cfg.data.backend),
            data_dir=data_dir_override or cfg.data.storage_dir,
        )
    return data_store


def get_resolver() -> ProductResolver:
    """Build a resolver with the configured matching parameters."""
    cfg = get_config()
    return ProductResolver(
        get_data_store(),
        threshold=cfg.matching.threshold,
        max_suggestions=cfg.matching.max_suggestions,
    )


def get_list_manager() -> ListManager:
    """Build a list manager grouping unmatched entries under the configured category."""
    return ListManager(
        get_data_store(),
        default_category=get_config().get("defaults.category", DEFAULT_CATEGORY),
    )


def _fail(error: Exception) -> None:
    """Report an error with a code matching its kind and exit with status 1."""
    if isinstance(error, ProductNotFoundError):
        formatter.error(str(error), error_code="PRODUCT_NOT_FOUND")
    elif isinstance(error, AliasNotFoundError):
        formatter.error(str(error), error_code="ALIAS_NOT_FOUND")
    elif isinstance(error, ObservationNotFoundError):
        formatter.error(str(error), error_code="PRICE_NOT_FOUND")
    elif isinstance(error, EntryNotFoundError):
        formatter.error(str(error), error_code="ENTRY_NOT_FOUND")
    elif isinstance(error, RecognitionError):
        formatter.error(user_message(error), error_code=type(error).__name__)
    elif isinstance(error, StorageError):
        log.error("Storage failure: %s", error)
        formatter.error(user_message(error), error_code="STORAGE_ERROR")
    elif isinstance(error, ValueError):
        formatter.error(str(error), error_code="VALIDATION_ERROR")
    else:
        log.exception("Unexpected error")
        formatter.error(user_message(error))
    raise typer.Exit(code=1)


@app.callback()
def main(
    json_output: Annotated[
        bool, typer.Option("--json", help="Output as JSON for programmatic use")
    ] = False,
    data_dir: Annotated[Path | None, typer.Option("--data-dir", help="Data directory path")] = None,
    demo: Annotated[
        bool, typer.Option("--demo", help="Use in-memory demo data instead of storage")
    ] = False,
) -> None:
    """cesta - keep a shopping list and find where it is cheapest."""
    global formatter, config, data_store, data_dir_override

    formatter = OutputFormatter(json_mode=json_output)

    # Load config early; TOMLDecodeError and unknown backends are both ValueErrors
    try:
        config = ConfigManager()
        backend = BackendType.DEMO if demo else BackendType(config.data.backend)
    except ValueError as e:
        formatter.error(f"Invalid configuration: {e}", error_code="VALIDATION_ERROR")
        raise typer.Exit(code=1)
    data_dir_override = data_dir

    # CLI --data-dir overrides config, which overrides default
    effective_data_dir = data_dir if data_dir else config.data.storage_dir

    try:
        data_store = create_data_store(backend=backend, data_dir=effective_data_dir)
    except StorageError as e:
        log.warning("Storage unavailable (%s); falling back to demo data", e)
        data_store = create_data_store(backend=BackendType.DEMO)


# --- Shopping list ---


@app.command()
def add(
    name: Annotated[str, typer.Argument(help="Product name to add")],
    quantity: Annotated[int, typer.Option("--quantity", "-q", help="Quantity to buy")] = 1,
) -> None:
    """Add a product to the shopping list."""
    try:
        result = get_list_manager().add_entry(name, quantity=quantity)
        formatter.output(result, result["message"])
    except Exception as e:
        _fail(e)


@app.command(name="list")
def list_entries(
    pending: Annotated[bool, typer.Option("--pending", help="Only unchecked entries")] = False,
    by_category: Annotated[
        bool, typer.Option("--by-category", "-c", help="Group entries by category")
    ] = False,
) -> None:
    """Show the shopping list."""
    try:
        manager = get_list_manager()
        if by_category:
            result = manager.get_by_category()
        else:
            result = manager.get_list(include_checked=not pending)
        formatter.output(result)
    except Exception as e:
        _fail(e)


@app.command()
def check(
    entry_id: Annotated[str, typer.Argument(help="Entry ID to check off")],
) -> None:
    """Mark a list entry as acquired."""
    try:
        result = get_list_manager().set_checked(entry_id, True)
        formatter.output(result, result["message"])
    except Exception as e:
        _fail(e)


@app.command()
def uncheck(
    entry_id: Annotated[str, typer.Argument(help="Entry ID to mark pending again")],
) -> None:
    """Mark a list entry as pending again."""
    try:
        result = get_list_manager().set_checked(entry_id, False)
        formatter.output(result, result["message"])
    except Exception as e:
        _fail(e)


@app.command()
def remove(
    entry_id: Annotated[str, typer.Argument(help="Entry ID to remove")],
) -> None:
    """Remove an entry from the shopping list."""
    try:
        result = get_list_manager().remove_entry(entry_id)
        formatter.output(result, result["message"])
    except Exception as e:
        _fail(e)


@app.command()
def clear() -> None:
    """Finalize a purchase by clearing checked entries."""
    try:
        result = get_list_manager().clear_checked()
        formatter.output(result, result["message"])
    except Exception as e:
        _fail(e)


@app.command()
def search(
    query: Annotated[str, typer.Argument(help="At least two characters")],
) -> None:
    """Autocomplete product names from the catalog and the list."""
    try:
        names = get_list_manager().search_names(query)
        formatter.output({"success": True, "data": {"names": names}})
    except Exception as e:
        _fail(e)


@app.command()
def recent() -> None:
    """Show the most recently added product names."""
    try:
        names = get_list_manager().recent_names()
        formatter.output({"success": True, "data": {"names": names}})
    except Exception as e:
        _fail(e)


# --- Comparison and insights ---


@app.command()
def compare() -> None:
    """Compare the pending list across supermarkets."""
    try:
        cfg = get_config()
        store = get_data_store()
        comparator = ListComparator(
            store,
            resolver=get_resolver(),
            max_workers=cfg.comparison.max_workers,
        )
        result = comparator.compare()

        output_data = {
            "success": result.success,
            "data": {"comparison": result.model_dump(mode="json")},
        }
        if result.status == ComparisonStatus.EMPTY_LIST:
            output_data["error"] = result.error
            if not formatter.json_mode:
                formatter.warning(result.error or "")
                return
        formatter.output(output_data)
    except Exception as e:
        _fail(e)


@app.command()
def resolve(
    name: Annotated[str, typer.Argument(help="Free-text product name")],
    store: Annotated[str | None, typer.Option("--store", "-s", help="Store context")] = None,
) -> None:
    """Resolve a name to a catalog product."""
    try:
        result = get_resolver().resolve(name, store=store)
        formatter.output({"success": True, "data": {"resolution": result.model_dump(mode="json")}})
    except Exception as e:
        _fail(e)


@app.command()
def similar(
    name: Annotated[str, typer.Argument(help="Free-text product name")],
) -> None:
    """List catalog products similar to a name."""
    try:
        suggestions = get_resolver().find_similar(name)
        formatter.output(
            {
                "success": True,
                "data": {"suggestions": [s.model_dump(mode="json") for s in suggestions]},
            }
        )
    except Exception as e:
        _fail(e)


@app.command()
def dashboard(
    budget: Annotated[
        float | None, typer.Option("--budget", "-b", help="Monthly budget to compare against")
    ] = None,
) -> None:
    """Current vs previous month spend by category."""
    try:
        cfg = get_config()
        effective_budget = budget if budget is not None else cfg.budget.monthly_limit
        aggregator = DashboardAggregator(
            get_data_store(),
            budget_limit=effective_budget,
            default_category=cfg.defaults.category,
        )
        summary = aggregator.aggregate()
        formatter.output({"success": True, "data": {"dashboard": summary.model_dump(mode="json")}})
    except Exception as e:
        _fail(e)


@app.command()
def stores() -> None:
    """List supermarkets with recorded prices."""
    try:
        names = PriceLedger(get_data_store()).list_stores()
        formatter.output({"success": True, "data": {"stores": names}})
    except Exception as e:
        _fail(e)


@app.command(name="store-products")
def store_products(
    store: Annotated[str, typer.Argument(help="Supermarket name")],
) -> None:
    """Latest price of every product seen at a supermarket."""
    try:
        rows = PriceLedger(get_data_store()).products_at_store(store)
        formatter.output(
            {
                "success": True,
                "data": {
                    "store": store,
                    "store_products": [row.model_dump(mode="json") for row in rows],
                },
            }
        )
    except Exception as e:
        _fail(e)


@app.command()
def catalog() -> None:
    """Show every product with its prices and aliases."""
    try:
        entries = CatalogManager(get_data_store()).get_catalog()
        formatter.output(
            {"success": True, "data": {"catalog": [e.model_dump(mode="json") for e in entries]}}
        )
    except Exception as e:
        _fail(e)


# Product subcommand group
product_app = typer.Typer(help="Catalog product commands")
app.add_typer(product_app, name="product")


@product_app.command("create")
def product_create(
    name: Annotated[str, typer.Argument(help="Canonical product name")],
    alias: Annotated[
        str | None, typer.Option("--alias", "-a", help="Original name to keep as alias")
    ] = None,
    store: Annotated[str | None, typer.Option("--store", "-s", help="Alias store scope")] = None,
    category: Annotated[
        str | None, typer.Option("--category", "-c", help="Explicit category")
    ] = None,
) -> None:
    """Create a product, optionally keeping the original name as an alias."""
    try:
        product = get_resolver().create_product(name, alias_name=alias, store=store, category=category)
        formatter.success(
            f"Created product {product.name}", {"product": product.model_dump(mode="json")}
        )
    except Exception as e:
        _fail(e)


@product_app.command("link")
def product_link(
    product_id: Annotated[str, typer.Argument(help="Product ID")],
    alias: Annotated[str, typer.Argument(help="Alias to attach")],
    store: Annotated[str | None, typer.Option("--store", "-s", help="Alias store scope")] = None,
) -> None:
    """Attach an alias to an existing product."""
    try:
        linked = get_resolver().link_alias(product_id, alias, store=store)
        formatter.success(f"Linked alias {linked.alias_name}", {"alias": linked.model_dump(mode="json")})
    except Exception as e:
        _fail(e)


@product_app.command("rename")
def product_rename(
    product_id: Annotated[str, typer.Argument(help="Product ID")],
    name: Annotated[str, typer.Argument(help="New canonical name")],
) -> None:
    """Rename a product."""
    try:
        product = CatalogManager(get_data_store()).rename_product(product_id, name)
        formatter.success(
            f"Renamed product to {product.name}", {"product": product.model_dump(mode="json")}
        )
    except Exception as e:
        _fail(e)


@product_app.command("category")
def product_category(
    product_id: Annotated[str, typer.Argument(help="Product ID")],
    category: Annotated[
        str | None, typer.Argument(help="Category name; omit to classify by name again")
    ] = None,
) -> None:
    """Set or clear the explicit category of a product."""
    try:
        product = CatalogManager(get_data_store()).set_category(product_id, category)
        message = (
            f"Set category of {product.name} to {product.category}"
            if product.category
            else f"Cleared category of {product.name}"
        )
        formatter.success(message, {"product": product.model_dump(mode="json")})
    except Exception as e:
        _fail(e)


@product_app.command("delete")
def product_delete(
    product_id: Annotated[str, typer.Argument(help="Product ID")],
) -> None:
    """Delete a product with its aliases and prices."""
    try:
        product = CatalogManager(get_data_store()).delete_product(product_id)
        formatter.success(f"Deleted product {product.name}")
    except Exception as e:
        _fail(e)


# Alias subcommand group
alias_app = typer.Typer(help="Product alias commands")
app.add_typer(alias_app, name="alias")


@alias_app.command("rename")
def alias_rename(
    alias_id: Annotated[str, typer.Argument(help="Alias ID")],
    name: Annotated[str, typer.Argument(help="New alias text")],
) -> None:
    """Change the text of an alias."""
    try:
        alias = CatalogManager(get_data_store()).rename_alias(alias_id, name)
        formatter.success(f"Renamed alias to {alias.alias_name}", {"alias": alias.model_dump(mode="json")})
    except Exception as e:
        _fail(e)


@alias_app.command("delete")
def alias_delete(
    alias_id: Annotated[str, typer.Argument(help="Alias ID")],
) -> None:
    """Delete an alias."""
    try:
        alias = CatalogManager(get_data_store()).delete_alias(alias_id)
        formatter.success(f"Deleted alias {alias.alias_name}")
    except Exception as e:
        _fail(e)


# Price subcommand group
price_app = typer.Typer(help="Price ledger commands")
app.add_typer(price_app, name="price")


@price_app.command("record")
def price_record(
    product_id: Annotated[str, typer.Argument(help="Product ID")],
    store: Annotated[str, typer.Argument(help="Supermarket name")],
    price: Annotated[float, typer.Argument(help="Shelf price")],
    recorded: DateOption = None,
    unit_price: Annotated[
        float | None, typer.Option("--unit-price", "-u", help="Price per kg/l")
    ] = None,
) -> None:
    """Record a price observation."""
    try:
        observation = PriceLedger(get_data_store()).record_observation(
            UUID(product_id),
            store,
            price,
            date_recorded=recorded.date() if recorded else None,
            unit_price=unit_price,
        )
        if observation is None:
            formatter.error(
                "Price dropped: it must be positive, with a store and an existing product",
                error_code="VALIDATION_ERROR",
            )
            raise typer.Exit(code=1)
        formatter.success(
            f"Recorded {price:.2f} at {store}", {"observation": observation.model_dump(mode="json")}
        )
    except typer.Exit:
        raise
    except Exception as e:
        _fail(e)


@price_app.command("update")
def price_update(
    observation_id: Annotated[str, typer.Argument(help="Price observation ID")],
    price: Annotated[float, typer.Argument(help="Corrected price")],
) -> None:
    """Correct a recorded price."""
    try:
        observation = CatalogManager(get_data_store()).update_price(observation_id, price)
        formatter.success(
            f"Updated price to {observation.price:.2f}",
            {"observation": observation.model_dump(mode="json")},
        )
    except Exception as e:
        _fail(e)


@price_app.command("delete")
def price_delete(
    observation_id: Annotated[str, typer.Argument(help="Price observation ID")],
) -> None:
    """Delete a recorded price."""
    try:
        CatalogManager(get_data_store()).delete_price(observation_id)
        formatter.success("Deleted price")
    except Exception as e:
        _fail(e)


@price_app.command("alerts")
def price_alerts() -> None:
    """Compare current prices with historical minimums."""
    try:
        store = get_data_store()
        names = {product.id: product.name for product in store.list_products()}
        alerts = []
        for alert in PriceLedger(store).price_alerts():
            row = alert.model_dump(mode="json")
            row["product_name"] = names.get(alert.product_id)
            alerts.append(row)
        formatter.output({"success": True, "data": {"alerts": alerts}})
    except Exception as e:
        _fail(e)


# --- Recognition ---


@app.command()
def scan(
    image: Annotated[Path, typer.Argument(help="Receipt image file", exists=True, dir_okay=False)],
    store: Annotated[
        str | None, typer.Option("--store", "-s", help="Override the detected store")
    ] = None,
    recorded: DateOption = None,
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="Show recognized prices without saving")
    ] = False,
) -> None:
    """Read prices from a receipt photo and save them to the ledger."""
    try:
        cfg = get_config()
        result = ReceiptRecognizer(cfg.recognition).scan_file(image)
        output_data: dict = {"success": True, "data": {"scan": result.model_dump(mode="json")}}

        if not dry_run:
            batch = ScanIngestor(get_data_store(), resolver=get_resolver()).save_scanned_prices(
                result.items,
                store=store or result.store or cfg.defaults.store,
                date_recorded=recorded.date() if recorded else result.receipt_date,
            )
            output_data["success"] = batch.success
            output_data["data"]["batch"] = batch.model_dump(mode="json")

        formatter.output(output_data, f"Recognized {len(result.items)} prices")
    except RecognitionNotConfiguredError as e:
        formatter.error(user_message(e), error_code="NOT_CONFIGURED")
        raise typer.Exit(code=1)
    except Exception as e:
        _fail(e)


@app.command()
def voice(
    transcript: Annotated[str, typer.Argument(help="Dictated text")],
    add_to_list: Annotated[
        bool, typer.Option("--add", help="Add recognized items to the list")
    ] = False,
) -> None:
    """Turn dictated text into shopping list items."""
    try:
        items = VoiceListParser(get_config().recognition).parse(transcript)
        if add_to_list:
            manager = get_list_manager()
            for item in items:
                manager.add_entry(item.name, quantity=item.quantity)
        formatter.output(
            {"success": True, "data": {"voice_items": [i.model_dump(mode="json") for i in items]}},
            f"Recognized {len(items)} items",
        )
    except RecognitionNotConfiguredError as e:
        formatter.error(user_message(e), error_code="NOT_CONFIGURED")
        raise typer.Exit(code=1)
    except Exception as e:
        _fail(e)


# --- Maintenance ---


@app.command(name="migrate")
def migrate_command(
    db_path: Annotated[Path | None, typer.Option("--db-path", help="SQLite database file")] = None,
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Merge into a database that has data")
    ] = False,
) -> None:
    """Copy JSON data into an SQLite database."""
    try:
        source = data_dir_override or get_config().data.storage_dir
        stats = migrate(data_dir=source, db_path=db_path, force=force)
        formatter.output({"success": True, "data": {"migration": stats}}, "Migration finished")
    except MigrationError as e:
        formatter.error(str(e), error_code="MIGRATION_FAILED")
        raise typer.Exit(code=1)
    except Exception as e:
        _fail(e)


if __name__ == "__main__":
    app()
