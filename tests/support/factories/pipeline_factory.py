"""Pipeline data factories for test data generation.

Generates model instances with deterministic defaults and override support
for specific test scenarios.
"""

import uuid

from funnel.models import BrandProfile, ItemStage, MonitoringTarget, TargetType, WorkItem
from funnel.schemas.content import RawContentItem


def create_target(
    value: str = "skincare",
    tag: str = "general",
    target_type: TargetType = TargetType.HASHTAG,
) -> MonitoringTarget:
    """Create a MonitoringTarget (not yet added to a session)."""
    return MonitoringTarget(target_type=target_type, value=value, tag=tag)


def create_brand(**kwargs) -> BrandProfile:
    """Create the BrandProfile row with sensible defaults.

    Example:
        >>> brand = create_brand(account_ref="placeholder-123")
    """
    defaults = {
        "id": 1,
        "product_name": "GlowSerum",
        "product_description": "Vitamin serum for radiant skin",
        "target_audience": "Skincare enthusiasts",
        "persona": "Friendly skincare expert",
        "account_ref": "acct_123",
        "account_handle": "glowbrand",
    }
    defaults.update(kwargs)
    return BrandProfile(**defaults)


def create_work_item(
    external_id: str | None = None,
    tag: str = "general",
    stage: ItemStage = ItemStage.DISCOVERED,
    description: str = "Morning routine with my favourite serum",
    **kwargs,
) -> WorkItem:
    """Create a WorkItem at the given stage.

    Stage fields are not filled in automatically; pass them as kwargs when
    the test needs an item that is consistent with a later stage.
    """
    if external_id is None:
        external_id = uuid.uuid4().hex[:16]

    return WorkItem(
        external_id=external_id,
        source_tag=tag,
        source_type=kwargs.pop("source_type", TargetType.HASHTAG),
        source_value=kwargs.pop("source_value", "skincare"),
        description=description,
        author_handle=kwargs.pop("author_handle", "creator"),
        stage=stage,
        **kwargs,
    )


def create_raw_item(external_id: str, description: str = "", **kwargs) -> RawContentItem:
    """Create a RawContentItem as returned by the discovery service."""
    return RawContentItem(
        external_id=external_id,
        description=description,
        author_handle=kwargs.pop("author_handle", "creator"),
        **kwargs,
    )


async def add_all(session_factory, *objects) -> None:
    """Persist objects in one transaction."""
    async with session_factory() as db, db.begin():
        db.add_all(objects)
