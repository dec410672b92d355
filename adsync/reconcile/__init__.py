"""Reconciler: desired state vs. live directory.

Public API:
    - Reconciler, plan(), Plan
    - DirectoryInspector
    - Operation, OpKind, Outcome, Status
    - Report
"""

from .inspector import DirectoryInspector
from .operations import OpKind, Operation, Outcome, Status
from .planner import Plan, Reconciler, plan
from .report import Report

__all__ = [
    "DirectoryInspector",
    "OpKind",
    "Operation",
    "Outcome",
    "Plan",
    "Reconciler",
    "Report",
    "Status",
    "plan",
]
