"""
Scenario registration and selection.

Scenarios register themselves by name when their module is imported, so a
worker process only needs the names to rebuild the same set.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

SUITES = ("ui", "api", "load")
DEFAULT_TIMEOUT = 300.0


@dataclass(frozen=True)
class Scenario:
    name: str
    suite: str
    func: Callable
    timeout: float = DEFAULT_TIMEOUT
    needs_browser: bool = True
    description: str = ""

    def __call__(self, ctx) -> None:
        self.func(ctx)


class ScenarioRegistry:
    """Name -> Scenario, in registration order."""

    def __init__(self):
        self._scenarios: Dict[str, Scenario] = {}

    def register(self, scenario: Scenario) -> Scenario:
        if scenario.suite not in SUITES:
            raise ValueError(f"Unknown suite {scenario.suite!r} for scenario {scenario.name!r}")
        if scenario.name in self._scenarios:
            raise ValueError(f"Scenario {scenario.name!r} is already registered")
        self._scenarios[scenario.name] = scenario
        return scenario

    def get(self, name: str) -> Scenario:
        try:
            return self._scenarios[name]
        except KeyError:
            known = ", ".join(sorted(self._scenarios))
            raise KeyError(f"Unknown scenario {name!r} (known: {known})") from None

    def __contains__(self, name: str) -> bool:
        return name in self._scenarios

    def __len__(self) -> int:
        return len(self._scenarios)

    def all(self) -> List[Scenario]:
        return list(self._scenarios.values())

    def select(self, suite: str = "all", names: Optional[Iterable[str]] = None) -> List[Scenario]:
        """Scenarios by explicit name (in the order given) or by suite."""
        if names:
            return [self.get(name) for name in names]
        if suite == "all":
            return self.all()
        if suite not in SUITES:
            raise ValueError(f"Unknown suite {suite!r}; choose from {', '.join(SUITES)} or all")
        return [s for s in self._scenarios.values() if s.suite == suite]


registry = ScenarioRegistry()


def scenario(name: str, suite: str, timeout: float = DEFAULT_TIMEOUT, needs_browser: Optional[bool] = None):
    """Decorator registering a ``func(ctx)`` as a scenario."""

    def decorator(func):
        registry.register(Scenario(
            name=name,
            suite=suite,
            func=func,
            timeout=timeout,
            needs_browser=(suite != "api") if needs_browser is None else needs_browser,
            description=(func.__doc__ or "").strip().splitlines()[0] if func.__doc__ else "",
        ))
        return func

    return decorator


def shard(names: List[str], workers: int) -> List[List[str]]:
    """Deal scenario names round-robin into at most ``workers`` non-empty shards."""
    if workers < 1:
        raise ValueError("workers must be at least 1")
    shards: List[List[str]] = [[] for _ in range(min(workers, len(names)))]
    for index, name in enumerate(names):
        shards[index % len(shards)].append(name)
    return shards
