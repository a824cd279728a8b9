"""
Result models for link fixing runs.
"""

from dataclasses import dataclass, field
from typing import List


@dataclass
class RuleResult:
    """Outcome of one rule applied to one download format."""

    format: str
    rule: str
    field_path: str
    matched: int = 0
    rewritten: int = 0
    changed: int = 0
    unchanged: int = 0
    conflicts: int = 0


@dataclass
class FixReport:
    """
    Run counter for one invocation.

    ``count_done`` is the number of rewrites performed, or simulated in dry-run
    mode. ``changed`` only counts rewrites whose new value differs from the old
    one; the two diverge when a no-op rewrite is written.
    """

    dry_run: bool
    passes: int = 0
    results: List[RuleResult] = field(default_factory=list)

    @property
    def count_done(self) -> int:
        return sum(r.rewritten for r in self.results)

    @property
    def changed(self) -> int:
        return sum(r.changed for r in self.results)

    @property
    def unchanged(self) -> int:
        return sum(r.unchanged for r in self.results)

    @property
    def conflicts(self) -> int:
        return sum(r.conflicts for r in self.results)

    def merge(self, other: "FixReport") -> None:
        self.passes += other.passes
        self.results.extend(other.results)
