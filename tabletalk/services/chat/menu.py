"""
Per-turn menu snapshot.

The tenant menu is read once at the start of a chat turn and used for
pricing, matching and prompt building for the whole turn, even if staff
edit the menu concurrently.
"""

from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tabletalk.models import MenuCategory, MenuItem


@dataclass(frozen=True)
class MenuEntry:
    id: str
    name: str
    price: float
    category: str


@dataclass(frozen=True)
class MenuSnapshot:
    entries: tuple[MenuEntry, ...] = ()
    categories: tuple[str, ...] = ()
    _by_name: dict = field(default_factory=dict, compare=False, repr=False)

    def __post_init__(self):
        # First entry wins when two items share a name
        for entry in self.entries:
            self._by_name.setdefault(entry.name.lower(), entry)

    def find(self, name: Optional[str]) -> Optional[MenuEntry]:
        """Case-insensitive exact name lookup."""
        if not name:
            return None
        return self._by_name.get(name.strip().lower())

    def names_longest_first(self) -> list[MenuEntry]:
        return sorted(self.entries, key=lambda e: len(e.name), reverse=True)

    def as_prompt_text(self, currency: str = "Rs.") -> str:
        blocks = []
        for category in self.categories:
            lines = [
                f"  - {e.name}: {currency}{e.price:g}"
                for e in self.entries
                if e.category == category
            ]
            blocks.append(f"{category}:\n" + "\n".join(lines))
        return "\n\n".join(blocks)


async def load_menu_snapshot(db: AsyncSession, tenant_id: str) -> MenuSnapshot:
    """Available items in active categories, ordered by category then name."""
    result = await db.execute(
        select(MenuItem, MenuCategory.name)
        .join(MenuCategory, MenuItem.category_id == MenuCategory.id)
        .where(
            MenuItem.tenant_id == tenant_id,
            MenuItem.is_available.is_(True),
            MenuCategory.is_active.is_(True),
        )
        .order_by(MenuCategory.sort_order, MenuCategory.name, MenuItem.name)
    )
    entries = []
    categories: list[str] = []
    for item, category_name in result.all():
        entries.append(MenuEntry(
            id=item.id,
            name=item.name,
            price=float(item.price),
            category=category_name,
        ))
        if category_name not in categories:
            categories.append(category_name)
    return MenuSnapshot(entries=tuple(entries), categories=tuple(categories))
