"""Output formatting for CLI and programmatic use."""

import json
from datetime import date, datetime, time
from typing import Any
from uuid import UUID

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .comparison import NO_DATA_LABEL


class JSONEncoder(json.JSONEncoder):
    """Custom JSON encoder for output."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, UUID):
            return str(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, date):
            return obj.isoformat()
        if isinstance(obj, time):
            return obj.isoformat()
        return super().default(obj)


def _money(value: float | None) -> str:
    return f"{value:.2f} €" if value is not None else "-"


class OutputFormatter:
    """Formats output for both Rich terminal and JSON modes."""

    def __init__(self, json_mode: bool = False):
        """Initialize formatter.

        Args:
            json_mode: If True, output JSON instead of Rich formatting
        """
        self.json_mode = json_mode
        self.console = Console()

    def output(self, data: dict[str, Any], message: str = "") -> None:
        """Output data in appropriate format.

        Args:
            data: Data to output
            message: Optional message for Rich mode
        """
        if self.json_mode:
            self._output_json(data)
        else:
            self._output_rich(data, message)

    def _output_json(self, data: dict[str, Any]) -> None:
        """Output as JSON to stdout."""
        print(json.dumps(data, cls=JSONEncoder, indent=2, ensure_ascii=False))

    def _output_rich(self, data: dict[str, Any], message: str) -> None:
        """Output with Rich formatting."""
        if message:
            self.console.print(f"[green]✓[/green] {message}")

        payload = data.get("data") or {}
        if self._is_demo(payload):
            self.console.print("[yellow]Modo demo: no hay almacenamiento configurado[/yellow]")

        if "list" in payload:
            self._render_list(data)
        elif "comparison" in payload:
            self._render_comparison(data)
        elif "resolution" in payload:
            self._render_resolution(data)
        elif "suggestions" in payload:
            self._render_suggestions(payload["suggestions"])
        elif "by_category" in payload:
            self._render_by_category(data)
        elif "dashboard" in payload:
            self._render_dashboard(data)
        elif "catalog" in payload:
            self._render_catalog(data)
        elif "store_products" in payload:
            self._render_store_products(data)
        elif "stores" in payload:
            self._render_names(payload["stores"], "Supermercados")
        elif "names" in payload:
            self._render_names(payload["names"], "Productos")
        elif "alerts" in payload:
            self._render_alerts(data)
        elif "scan" in payload:
            self._render_scan(data)
        elif "voice_items" in payload:
            self._render_voice_items(data)
        elif "migration" in payload:
            self._render_migration(data)

    @staticmethod
    def _is_demo(payload: dict[str, Any]) -> bool:
        """Demo flag on the payload itself or on any rendered section."""
        if payload.get("is_demo"):
            return True
        return any(
            isinstance(section, dict) and section.get("is_demo") for section in payload.values()
        )

    def _render_list(self, data: dict) -> None:
        """Render shopping list with Rich."""
        list_data = data["data"]["list"]
        entries = list_data["entries"]

        if not entries:
            self.console.print("[dim]Tu lista está vacía[/dim]")
            return

        table = Table(title="Lista de la compra", show_header=True, header_style="bold cyan")
        table.add_column("ID", style="dim", no_wrap=True)
        table.add_column("Producto", style="cyan")
        table.add_column("Cant.", style="magenta", justify="right")
        table.add_column("", style="blue")

        for entry in entries:
            status_icon = "[green]✓[/green]" if entry["is_checked"] else "○"
            table.add_row(
                entry["id"],
                entry["product_name"],
                str(entry["quantity"]),
                status_icon,
            )

        self.console.print(table)
        self.console.print(f"\nPendientes: {list_data['pending_count']}")

    def _render_by_category(self, data: dict) -> None:
        """Render entries grouped by category."""
        for category, entries in data["data"]["by_category"].items():
            self.console.print(f"\n[bold yellow]{category}[/bold yellow]")
            for entry in entries:
                mark = "✓" if entry["is_checked"] else "○"
                self.console.print(f"  {mark} {entry['product_name']} x{entry['quantity']}")

    def _render_comparison(self, data: dict) -> None:
        """Render a list comparison: per-product prices, single store and split."""
        comparison = data["data"]["comparison"]

        table = Table(title="Comparativa", show_header=True, header_style="bold cyan")
        table.add_column("Producto", style="cyan")
        table.add_column("Cant.", justify="right")
        table.add_column("Precios", style="green")

        for product in comparison["products"]:
            if product.get("error"):
                prices = f"[red]{product['error']}[/red]"
            elif not product["prices"]:
                prices = f"[dim]{NO_DATA_LABEL}[/dim]"
            else:
                prices = ", ".join(
                    f"{row['store']} {_money(row['price'])}" for row in product["prices"]
                )
            table.add_row(product["product_name"], str(product["quantity"]), prices)
        self.console.print(table)

        single = comparison.get("best_single_store")
        if single:
            lines = "\n".join(
                f"{item['name']} x{item['quantity']} @ {_money(item['price'])}"
                for item in single["items"]
            )
            self.console.print(
                Panel(
                    f"{lines}\n\n[bold]Total: {_money(single['total'])}[/bold]",
                    title=f"Mejor supermercado: {single['store']}",
                    border_style="blue",
                )
            )
        else:
            self.console.print("[dim]Ningún supermercado tiene todos los productos[/dim]")

        for basket in comparison["optimized_split"]:
            lines = "\n".join(
                f"{item['name']} x{item['quantity']} @ {_money(item['price'])}"
                for item in basket["items"]
            )
            self.console.print(
                Panel(
                    f"{lines}\n\nSubtotal: {_money(basket['total'])}",
                    title=basket["store"],
                    border_style="green",
                )
            )

        if comparison["optimized_split"]:
            self.console.print(f"Total repartido: {_money(comparison['optimized_total'])}")
            self.console.print(
                f"[bold green]Ahorro: {_money(comparison['total_savings'])}[/bold green]"
            )

    def _render_resolution(self, data: dict) -> None:
        """Render the outcome of resolving a name."""
        resolution = data["data"]["resolution"]
        exact = resolution.get("exact_match")
        if exact:
            self.console.print(
                f"[green]Coincidencia exacta[/green] ({resolution['match_source']}): "
                f"{exact['name']} [dim]{exact['id']}[/dim]"
            )
            return
        if not resolution["suggestions"]:
            self.console.print(f"[dim]Sin coincidencias para '{resolution['query']}'[/dim]")
            return
        self._render_suggestions(resolution["suggestions"])

    def _render_suggestions(self, suggestions: list[dict]) -> None:
        """Render fuzzy product suggestions."""
        if not suggestions:
            self.console.print("[dim]Sin sugerencias[/dim]")
            return

        table = Table(title="Sugerencias", show_header=True)
        table.add_column("Producto", style="cyan")
        table.add_column("Similitud", justify="right")
        table.add_column("Alias", style="dim")
        table.add_column("ID", style="dim")

        for suggestion in suggestions:
            table.add_row(
                suggestion["name"],
                f"{suggestion['similarity']:.0%}",
                ", ".join(suggestion.get("aliases", [])),
                suggestion["id"],
            )
        self.console.print(table)

    def _render_dashboard(self, data: dict) -> None:
        """Render monthly spend summary."""
        dashboard = data["data"]["dashboard"]

        content = (
            f"Este mes: [bold]{_money(dashboard['current_month_total'])}[/bold]\n"
            f"Mes anterior: {_money(dashboard['last_month_total'])}"
        )
        if dashboard.get("month_over_month_pct") is not None:
            pct = dashboard["month_over_month_pct"]
            color = "red" if pct > 0 else "green"
            content += f"\nVariación: [{color}]{pct:+.1f}%[/{color}]"
        if dashboard.get("budget_limit"):
            remaining = dashboard["budget_remaining"]
            color = "green" if remaining >= 0 else "red"
            content += (
                f"\nPresupuesto: {_money(dashboard['budget_limit'])} "
                f"([{color}]{_money(remaining)} restante[/{color}])"
            )
        self.console.print(Panel(content, title=f"Gasto {dashboard['month']}"))

        if dashboard["category_spend"]:
            table = Table(show_header=True)
            table.add_column("Categoría", style="yellow")
            table.add_column("Gasto", justify="right")
            table.add_column("%", justify="right")
            for row in dashboard["category_spend"]:
                table.add_row(row["category"], _money(row["amount"]), f"{row['percentage']:.1f}")
            self.console.print(table)

    def _render_catalog(self, data: dict) -> None:
        """Render the product catalog."""
        catalog = data["data"]["catalog"]
        if not catalog:
            self.console.print("[dim]Catálogo vacío[/dim]")
            return

        table = Table(title="Catálogo", show_header=True, header_style="bold cyan")
        table.add_column("ID", style="dim", no_wrap=True)
        table.add_column("Producto", style="cyan")
        table.add_column("Mejor precio", justify="right", style="green")
        table.add_column("Supermercados")
        table.add_column("Alias", style="dim")

        for entry in catalog:
            best = _money(entry["best_price"])
            if entry.get("best_supermarket"):
                best += f" ({entry['best_supermarket']})"
            table.add_row(
                entry["id"],
                entry["name"],
                best,
                str(len(entry["prices"])),
                ", ".join(alias["alias_name"] for alias in entry["aliases"]),
            )
        self.console.print(table)

    def _render_store_products(self, data: dict) -> None:
        """Render latest prices at one store."""
        payload = data["data"]
        table = Table(title=payload.get("store", ""), show_header=True)
        table.add_column("Producto", style="cyan")
        table.add_column("Precio", justify="right", style="green")
        table.add_column("Fecha")
        table.add_column("Registros", justify="right")
        for row in payload["store_products"]:
            table.add_row(
                row["product_name"],
                _money(row["last_price"]),
                row["last_date"],
                str(row["count_records"]),
            )
        self.console.print(table)

    def _render_names(self, names: list[str], title: str) -> None:
        if not names:
            self.console.print("[dim]Sin resultados[/dim]")
            return
        self.console.print(f"[bold]{title}[/bold]")
        for name in names:
            self.console.print(f"  {name}")

    def _render_alerts(self, data: dict) -> None:
        """Render current vs historical minimum prices."""
        table = Table(title="Alertas de precio", show_header=True)
        table.add_column("Producto", style="cyan")
        table.add_column("Mínimo", justify="right")
        table.add_column("Actual", justify="right")
        table.add_column("Supermercado")
        table.add_column("", justify="right")
        for alert in data["data"]["alerts"]:
            if alert["is_record_low"]:
                flag = "[green]mínimo histórico[/green]"
            elif alert.get("above_min_pct") is not None:
                flag = f"[red]+{alert['above_min_pct']:.1f}%[/red]"
            else:
                flag = ""
            table.add_row(
                alert.get("product_name") or alert["product_id"][:8],
                _money(alert["min_price"]),
                _money(alert.get("current_price")),
                alert.get("current_store") or "-",
                flag,
            )
        self.console.print(table)

    def _render_scan(self, data: dict) -> None:
        """Render recognized receipt prices and the save outcome."""
        scan = data["data"]["scan"]
        table = Table(title=scan.get("store") or "Ticket", show_header=True)
        table.add_column("Producto", style="cyan")
        table.add_column("Precio", justify="right", style="green")
        for item in scan["items"]:
            table.add_row(item["name"], _money(item["price"]))
        self.console.print(table)

        for record in scan.get("rejected", []):
            self.console.print(f"[yellow]Descartado:[/yellow] {record['name']} ({record['reason']})")

        batch = data["data"].get("batch")
        if batch:
            saved = sum(1 for r in batch["results"] if r["success"])
            self.console.print(f"Guardados: {saved}/{len(batch['results'])}")
            for result in batch["results"]:
                if not result["success"]:
                    self.console.print(f"[red]✗[/red] {result['name']}: {result['error']}")

    def _render_voice_items(self, data: dict) -> None:
        for item in data["data"]["voice_items"]:
            self.console.print(f"  {item['name']} x{item['quantity']}")

    def _render_migration(self, data: dict) -> None:
        for key, value in data["data"]["migration"].items():
            self.console.print(f"  {key}: {value}")

    def error(self, message: str, error_code: str | None = None) -> None:
        """Output error message.

        Args:
            message: Error message
            error_code: Optional error code
        """
        if self.json_mode:
            output = {"success": False, "error": message}
            if error_code:
                output["error_code"] = error_code
            print(json.dumps(output, ensure_ascii=False))
        else:
            self.console.print(f"[red]✗ Error:[/red] {message}")

    def success(self, message: str, data: dict | None = None) -> None:
        """Output success message.

        Args:
            message: Success message
            data: Optional data to include
        """
        if self.json_mode:
            output: dict[str, Any] = {"success": True, "message": message}
            if data:
                output["data"] = data
            print(json.dumps(output, cls=JSONEncoder, ensure_ascii=False))
        else:
            self.console.print(f"[green]✓[/green] {message}")

    def warning(self, message: str) -> None:
        """Output warning message.

        Args:
            message: Warning message
        """
        if self.json_mode:
            print(json.dumps({"warning": message}, ensure_ascii=False))
        else:
            self.console.print(f"[yellow]⚠[/yellow] {message}")
