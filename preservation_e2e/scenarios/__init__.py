"""
Scenario modules.

Importing this package registers every scenario with ``registry``.
"""

from preservation_e2e.scenarios import (  # noqa: F401
    api_import,
    archival_group,
    containers,
    deposits,
    iiif,
    load,
    locking,
    pipeline,
    search,
)
from preservation_e2e.scenarios.context import ScenarioContext
from preservation_e2e.scenarios.registry import SUITES, Scenario, ScenarioRegistry, registry, scenario, shard

__all__ = [
    "SUITES",
    "Scenario",
    "ScenarioContext",
    "ScenarioRegistry",
    "registry",
    "scenario",
    "shard",
]
