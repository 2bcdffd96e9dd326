# Data factories for test data generation

from tests.support.factories.pipeline_factory import (
    add_all,
    create_brand,
    create_raw_item,
    create_target,
    create_work_item,
)

__all__ = [
    "add_all",
    "create_brand",
    "create_raw_item",
    "create_target",
    "create_work_item",
]
