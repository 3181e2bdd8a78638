"""
Package catalog parsing.

A catalog is a plain text file of package identifiers grouped under
category headers::

    # Category: Web Server
    nginx
    certbot python3-certbot-nginx

    # Category: Monitoring
    htop iotop

Parsing is a single pass through a two-state machine: outside any category,
and inside a category accumulating package identifiers. A header always
starts a new category, so a header directly followed by another header
yields a category with no packages.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from .errors import CatalogReadError, SelectionError

DEFAULT_MARKER: str = "# Category:"

CatalogSource = Union[str, Path]


@dataclass(frozen=True)
class Category:
    name: str
    packages: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Catalog:
    """Ordered sequence of categories as they appear in the source."""

    categories: Tuple[Category, ...] = ()

    def names(self) -> List[str]:
        return [category.name for category in self.categories]

    def find(self, name: str) -> Optional[Category]:
        """First category with exactly this name."""
        for category in self.categories:
            if category.name == name:
                return category
        return None

    def packages_for(self, name: str) -> List[str]:
        category = self.find(name)
        return list(category.packages) if category else []

    def __len__(self) -> int:
        return len(self.categories)


@dataclass
class _InsideCategory:
    name: str
    packages: List[str] = field(default_factory=list)

    def close(self) -> Category:
        return Category(self.name, tuple(self.packages))


def parse_catalog(lines: Iterable[str], marker: str = DEFAULT_MARKER) -> Catalog:
    """Build a :class:`Catalog` from an iterable of lines."""
    categories: List[Category] = []
    state: Optional[_InsideCategory] = None  # None means outside any category

    for raw in lines:
        # Headers are anchored at column 0
        head = raw.lstrip("\ufeff")
        if head.startswith(marker):
            if state is not None:
                categories.append(state.close())
            name = head[len(marker):].strip()
            # A header without a name closes the block without opening one
            state = _InsideCategory(name) if name else None
            continue
        line = raw.strip()
        if state is None or not line or line.startswith("#"):
            continue
        state.packages.extend(line.split())

    if state is not None:
        categories.append(state.close())
    return Catalog(tuple(categories))


def load_catalog(source: CatalogSource, marker: str = DEFAULT_MARKER) -> Catalog:
    """Read and parse the catalog file at ``source``."""
    path = Path(source)
    try:
        with path.open("r", encoding="utf-8") as f:
            return parse_catalog(f, marker)
    except (OSError, UnicodeDecodeError) as e:
        raise CatalogReadError(f"Cannot read package catalog {path}: {e}") from e


def list_categories(source: CatalogSource, marker: str = DEFAULT_MARKER) -> List[str]:
    """Category names in source order; empty when the file has no headers."""
    return load_catalog(source, marker).names()


def select_category(categories: Sequence[str], index: Union[int, str]) -> str:
    """Resolve a 1-based operator selection to a category name."""
    if isinstance(index, str):
        try:
            index = int(index.strip())
        except ValueError:
            raise SelectionError(f"Invalid category selection: {index!r}") from None
    if not categories:
        raise SelectionError("No categories available")
    if not 1 <= index <= len(categories):
        raise SelectionError(
            f"Invalid category selection: {index} (expected 1-{len(categories)})"
        )
    return categories[index - 1]


def packages_for(
    source: CatalogSource, category_name: str, marker: str = DEFAULT_MARKER
) -> List[str]:
    """Packages listed under ``category_name``, re-reading the catalog."""
    return load_catalog(source, marker).packages_for(category_name)
