#!/usr/bin/env python
"""Browse the catalog from a terminal using the same controller a UI shell would."""

from __future__ import annotations

import argparse
import asyncio

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from pokedex.app import catalog_session, configure_logging
from pokedex.schemas.catalog import ListItem
from pokedex.schemas.error import CatalogError
from pokedex.services.catalog_controller import CatalogController
from pokedex.services.connectivity import ConnectivityObserver
from pokedex.settings import get_settings

console = Console()


def _render_items(controller: CatalogController, items: list[ListItem], title: str) -> None:
    if not items:
        console.print("[yellow]No entries to show.[/yellow]")
        return
    table = Table("#", "Slug", "Name", "Favorite", title=title)
    for position, item in enumerate(items, start=1):
        star = "★" if controller.is_favorite(item.slug) else ""
        table.add_row(str(position), item.slug, item.name.title(), star)
    console.print(table)


async def _show_detail(controller: CatalogController, item_id: str) -> None:
    try:
        detail = await controller.fetch_detail(item_id)
    except CatalogError as exc:
        console.print(f"[red]Failed to load details for {item_id}: {exc.message}[/red]")
        return
    table = Table("Field", "Value", title=f"#{detail.id} {detail.name.title()}")
    table.add_row("Experience", f"{detail.base_experience} XP")
    table.add_row("Height", f"{detail.height_m:.1f} m")
    table.add_row("Weight", f"{detail.weight_kg:.1f} kg")
    table.add_row("Artwork", detail.image_url)
    console.print(table)


async def browse(args: argparse.Namespace) -> None:
    connectivity = ConnectivityObserver(initially_connected=not args.offline)
    async with catalog_session(connectivity=connectivity) as controller:
        await controller.wait_until_idle()

        for _ in range(max(args.pages - 1, 0)):
            if not controller.state.has_more:
                break
            await controller.load_list(refresh=False)

        if controller.state.error is not None:
            console.print(f"[red]{controller.state.error.message}[/red]")

        for item_id in args.toggle_favorite:
            added = controller.toggle_favorite(item_id)
            verb = "Added" if added else "Removed"
            console.print(f"[cyan]{verb} {item_id} {'to' if added else 'from'} favorites[/cyan]")

        if args.clear_favorites:
            controller.remove_all_favorites()
            console.print("[cyan]Cleared all favorites[/cyan]")

        title = "Favorites" if args.favorites_only else "Catalog"
        _render_items(controller, controller.filtered_items(args.favorites_only), title)

        for item_id in args.detail:
            await _show_detail(controller, item_id)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Browse the remote catalog with offline caching.")
    parser.add_argument("--pages", type=int, default=1, help="Number of pages to load.")
    parser.add_argument(
        "--detail", action="append", default=[], metavar="ID", help="Show details for an entry."
    )
    parser.add_argument(
        "--toggle-favorite",
        action="append",
        default=[],
        metavar="ID",
        help="Flip the favorite flag of an entry.",
    )
    parser.add_argument("--favorites-only", action="store_true", help="Only list favorites.")
    parser.add_argument("--clear-favorites", action="store_true", help="Remove every favorite.")
    parser.add_argument(
        "--offline", action="store_true", help="Pretend the device is offline (cache only)."
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    load_dotenv()
    configure_logging(get_settings())
    asyncio.run(browse(args))


if __name__ == "__main__":
    main()
