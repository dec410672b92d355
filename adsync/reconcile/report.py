from __future__ import annotations

import json
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from .operations import Outcome, Status
from .planner import Plan


@dataclass
class Report:
    """Per-entity result of one run.

    Entities needing no write come first, in plan order, then entities whose
    lookup failed with the writes skipped because of them, then the results
    of the executed batch. A failed or skipped entry can be retried by running
    again with the same input.
    """

    outcomes: list[Outcome] = field(default_factory=list)
    error: str = ""
    dry_run: bool = False

    @classmethod
    def build(
        cls,
        plan: Plan | None,
        results: list[Outcome],
        error: Exception | None = None,
        dry_run: bool = False,
    ) -> "Report":
        outcomes: list[Outcome] = list(plan.unchanged) + list(plan.failed) if plan else []
        if dry_run and plan:
            outcomes.extend(Outcome.of(op, Status.PLANNED) for op in plan.operations)
        else:
            outcomes.extend(results)
        return cls(outcomes=outcomes, error=str(error) if error else "", dry_run=dry_run)

    def by_status(self, status: Status) -> list[Outcome]:
        return [o for o in self.outcomes if o.status is status]

    @property
    def counts(self) -> dict[str, int]:
        c = Counter(o.status.value for o in self.outcomes)
        return {s.value: c[s.value] for s in Status if c[s.value]}

    @property
    def writes(self) -> int:
        return sum(1 for o in self.outcomes if o.status in (Status.CREATED, Status.ADDED))

    @property
    def ok(self) -> bool:
        return not self.error and all(o.ok for o in self.outcomes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "dry_run": self.dry_run,
            "error": self.error,
            "counts": self.counts,
            "outcomes": [
                {
                    "entity": o.entity,
                    "name": o.name,
                    "status": o.status.value,
                    "operation": str(o.operation) if o.operation else "",
                    "message": o.message,
                }
                for o in self.outcomes
            ],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2)
