"""Graph loading application layer.

Contains the load orchestrator and the public API for the graph loading
bounded context.
"""

from graph_loading.application.errors import raise_for_result
from graph_loading.application.loader import GraphLoader
from graph_loading.application.options import LoadOptions, resolve_plan
from graph_loading.application.progress import ProgressReporter

__all__ = [
    "GraphLoader",
    "LoadOptions",
    "ProgressReporter",
    "raise_for_result",
    "resolve_plan",
]
