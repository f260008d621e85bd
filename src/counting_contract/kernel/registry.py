from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List

from .errors import RegistryError, UnsupportedVersion
from .version import parse_version


# Signature: (deps, migrate_msg) -> Response
UpgradeFn = Callable[..., Any]


@dataclass
class UpgradeStep:
    from_version: str
    to_version: str
    handler: UpgradeFn


class UpgradeRegistry:
    """Upgrade handlers keyed by the exact version label they upgrade from."""

    def __init__(self) -> None:
        self._registry: Dict[str, UpgradeStep] = {}

    def register(self, from_version: str, to_version: str, handler: UpgradeFn) -> None:
        if from_version in self._registry:
            raise RegistryError(f"Duplicate upgrade handler for {from_version}")
        if parse_version(to_version) <= parse_version(from_version):
            raise RegistryError(
                f"Upgrade {from_version} -> {to_version} does not move forward"
            )
        self._registry[from_version] = UpgradeStep(from_version, to_version, handler)

    def step(self, from_version: str, to_version: str) -> Callable[[UpgradeFn], UpgradeFn]:
        """Decorator form of register()."""

        def decorator(fn: UpgradeFn) -> UpgradeFn:
            self.register(from_version, to_version, fn)
            return fn

        return decorator

    def versions(self) -> List[str]:
        return sorted(self._registry, key=parse_version)

    def chain_from(self, version: str, target: str) -> List[UpgradeStep]:
        """Steps leading from version to target, in application order.

        Raises UnsupportedVersion when no registered path starts at version.
        """
        if version not in self._registry:
            raise UnsupportedVersion(version)

        steps: List[UpgradeStep] = []
        current = version
        while current != target:
            step = self._registry.get(current)
            if step is None:
                raise UnsupportedVersion(version)
            steps.append(step)
            current = step.to_version
        return steps

    def validate(self, target: str) -> None:
        """Every registered version must reach target; fails the build otherwise."""
        if not self._registry:
            return
        for version in self._registry:
            seen = {version}
            current = self._registry[version].to_version
            while current != target:
                if current not in self._registry or current in seen:
                    raise RegistryError(
                        f"Upgrade chain from {version} stops at {current}, "
                        f"not at the current version {target}"
                    )
                seen.add(current)
                current = self._registry[current].to_version
