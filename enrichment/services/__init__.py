"""Service layer exports."""

from .aggregator import PostAggregator
from .analyzer import BaseAnalyzer
from .batch import BatchAnalyzer
from .concurrent import ConcurrentAnalyzer
from .cost import CostLedger, compute_cost, estimate_run_cost
from .reconciler import BatchReconciler, TaskOutcome, parse_analysis, parse_completion
from .sequential import SequentialAnalyzer
from .task_encoder import TaskEncoder

__all__ = [
    "BaseAnalyzer",
    "BatchAnalyzer",
    "BatchReconciler",
    "ConcurrentAnalyzer",
    "CostLedger",
    "PostAggregator",
    "SequentialAnalyzer",
    "TaskEncoder",
    "TaskOutcome",
    "compute_cost",
    "estimate_run_cost",
    "parse_analysis",
    "parse_completion",
]
