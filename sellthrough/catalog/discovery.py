"""
Tag-filtered catalog discovery.

A product qualifies only when ALL required tags appear in its own tag set.
"""

import re
from typing import Iterable, List, Set, Union

import structlog

from .client import CatalogClient
from .models import CatalogProduct, split_product_tags

logger = structlog.get_logger(__name__)

_SEASON_KEY_SEPARATORS = re.compile(r"[,;]")


def normalize_tags(tags: Iterable[str]) -> Set[str]:
    """Trim and lowercase tags, dropping empty ones"""
    return {tag.strip().lower() for tag in tags if tag and tag.strip()}


def parse_season_key(season_key: str) -> Set[str]:
    """
    Required tags encoded in a season key.

    Example:
        parse_season_key("FW25, MEN;outlet") == {"fw25", "men", "outlet"}
    """
    return normalize_tags(_SEASON_KEY_SEPARATORS.split(season_key or ""))


async def discover_tagged_products(
    client: CatalogClient,
    required_tags: Union[str, Iterable[str]],
) -> List[CatalogProduct]:
    """
    Walk the full catalog and keep products carrying every required tag.

    Args:
        client: Catalog client used for each page fetch
        required_tags: Tags to require, or a season key string encoding them

    Returns:
        Matching products in catalog order; empty when no tags were given
    """
    if isinstance(required_tags, str):
        required = parse_season_key(required_tags)
    else:
        required = normalize_tags(required_tags)

    if not required:
        logger.warning("No required tags supplied; skipping catalog discovery")
        return []

    matched: List[CatalogProduct] = []
    scanned = 0

    async for page in client.iter_product_pages():
        for raw in page:
            scanned += 1
            if not required.issubset(split_product_tags(raw.get("tags"))):
                continue
            matched.append(CatalogProduct.model_validate(raw))

    logger.info(
        "Catalog discovery finished",
        required_tags=sorted(required),
        scanned=scanned,
        matched=len(matched),
    )
    return matched
