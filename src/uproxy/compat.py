"""Upgrade compatibility checks for integrators.

Nothing here is enforced by the proxy: ``upgradeTo`` repoints the
backend reference whatever the new module's layout looks like.  These
helpers let an integrator check, before upgrading, that:

- the new layout only *appends* fields to the old one, and
- no backend operation shares a selector with a privileged proxy
  operation (such an operation is unreachable for the administrator).

Usage
-----
::

    from uproxy.compat import check_layout, selector_clashes

    report = check_layout(CounterV1.layout, CounterV2.layout)
    assert report.is_compatible, report.summary()
    assert selector_clashes(CounterV2) == []
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto

from uproxy.contract import Contract
from uproxy.storage.layout import StorageLayout


class LayoutChangeKind(Enum):
    """What happened to a single slot between two layouts."""

    APPENDED = auto()
    REMOVED = auto()
    RETYPED = auto()
    RENAMED = auto()
    REORDERED = auto()


_BREAKING_KINDS: frozenset[LayoutChangeKind] = frozenset(
    {
        LayoutChangeKind.REMOVED,
        LayoutChangeKind.RETYPED,
        LayoutChangeKind.REORDERED,
    }
)


@dataclass(frozen=True)
class LayoutChange:
    """A single slot-level difference.

    Parameters
    ----------
    slot:
        Slot index the change applies to.
    kind:
        What changed.
    description:
        Human-readable description.
    severity:
        ``"breaking"`` when previously stored values would be
        misinterpreted, ``"warning"`` for a rename, ``"info"`` otherwise.
    """

    slot: int
    kind: LayoutChangeKind
    description: str
    severity: str = "info"

    def __str__(self) -> str:
        tag = {"breaking": "!!", "warning": "~~", "info": "  "}.get(self.severity, "  ")
        return f"[{tag}] slot {self.slot}: {self.description}"


@dataclass
class CompatibilityReport:
    """Result of comparing an old layout with a candidate new one."""

    changes: list[LayoutChange] = field(default_factory=list)

    @property
    def is_compatible(self) -> bool:
        """``True`` when no change would misinterpret stored values."""
        return not any(change.severity == "breaking" for change in self.changes)

    @property
    def breaking(self) -> list[LayoutChange]:
        return [change for change in self.changes if change.severity == "breaking"]

    def by_kind(self, kind: LayoutChangeKind) -> list[LayoutChange]:
        return [change for change in self.changes if change.kind == kind]

    def summary(self) -> str:
        if not self.changes:
            return "Layouts are identical."
        verdict = "compatible" if self.is_compatible else "INCOMPATIBLE"
        lines = [f"Layout upgrade is {verdict}: {len(self.changes)} change(s)"]
        lines.extend(f"  {change}" for change in self.changes)
        return "\n".join(lines)

    def to_dict(self) -> dict[str, object]:
        return {
            "compatible": self.is_compatible,
            "changes": [
                {
                    "slot": change.slot,
                    "kind": change.kind.name,
                    "description": change.description,
                    "severity": change.severity,
                }
                for change in self.changes
            ],
        }


def _severity(kind: LayoutChangeKind) -> str:
    if kind in _BREAKING_KINDS:
        return "breaking"
    if kind is LayoutChangeKind.RENAMED:
        return "warning"
    return "info"


def check_layout(old: StorageLayout, new: StorageLayout) -> CompatibilityReport:
    """Compare ``new`` against ``old`` slot by slot."""
    report = CompatibilityReport()
    old_names = old.names
    new_names = new.names

    def add(slot: int, kind: LayoutChangeKind, description: str) -> None:
        report.changes.append(LayoutChange(slot, kind, description, _severity(kind)))

    for slot, old_field in enumerate(old.fields):
        if slot >= len(new.fields):
            add(slot, LayoutChangeKind.REMOVED, f"field {old_field} was removed")
            continue
        new_field = new.fields[slot]
        if new_field.name != old_field.name:
            if new_field.name in old_names or old_field.name in new_names:
                add(
                    slot,
                    LayoutChangeKind.REORDERED,
                    f"{old_field.name!r} replaced by {new_field.name!r} from another slot",
                )
                continue
            add(slot, LayoutChangeKind.RENAMED, f"{old_field.name!r} renamed to {new_field.name!r}")
        if new_field.kind is not old_field.kind:
            add(
                slot,
                LayoutChangeKind.RETYPED,
                f"{new_field.name!r} changed from {old_field.kind.value} "
                f"to {new_field.kind.value}",
            )

    for slot in range(len(old.fields), len(new.fields)):
        add(slot, LayoutChangeKind.APPENDED, f"field {new.fields[slot]} appended")
    return report


def selector_clashes(interface: type[Contract]) -> list[str]:
    """Signatures in ``interface`` whose selector aliases a privileged proxy operation."""
    from uproxy.proxy import DelegationProxy

    privileged = DelegationProxy.operations
    return sorted(
        op.signature for sel, op in interface.operations.items() if sel in privileged
    )


__all__ = [
    "LayoutChangeKind",
    "LayoutChange",
    "CompatibilityReport",
    "check_layout",
    "selector_clashes",
]
