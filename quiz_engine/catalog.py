# quiz_engine/catalog.py
# Loads and checks the static catalog of result items.

import logging
from pathlib import Path
from typing import Any, List, Union

import yaml
from pydantic import ValidationError

from .models import CatalogItem, ConfigurationError

logger = logging.getLogger(__name__)


def load_catalog(data: Any) -> List[CatalogItem]:
    """
    Validates raw catalog data.

    Args:
        data: Either a list of items or a mapping with a `plants` (or `items`) list.

    Returns:
        The catalog items, in document order.

    Raises:
        ConfigurationError: If the catalog is empty, an item is malformed,
                            an item has no tags, or two items share a name.
    """
    if isinstance(data, dict):
        data = data.get("plants", data.get("items"))
    if not isinstance(data, list) or not data:
        raise ConfigurationError("Catalog must be a non-empty list of items",
                                 {"actual": type(data).__name__})

    items: List[CatalogItem] = []
    seen_names = set()
    for index, raw in enumerate(data, start=1):
        try:
            item = CatalogItem.model_validate(raw)
        except ValidationError as e:
            raise ConfigurationError(
                f"Catalog item {index}: {e.errors()[0]['msg']}",
                {"index": index, "errors": e.errors(include_url=False, include_context=False)},
            ) from e
        if not item.tags:
            raise ConfigurationError(f"Catalog item {index} ({item.name}): tags must be a non-empty list",
                                     {"index": index, "name": item.name})
        if item.name in seen_names:
            raise ConfigurationError(f"Duplicate catalog item name: {item.name}", {"name": item.name})
        seen_names.add(item.name)
        items.append(item)

    logger.info(f"Catalog loaded: {len(items)} items")
    return items


def load_catalog_from_file(path: Union[str, Path]) -> List[CatalogItem]:
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"Catalog file not found: {path}", {"path": str(path)})
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Error parsing catalog file {path}: {e}", {"path": str(path)}) from e
    return load_catalog(data)
