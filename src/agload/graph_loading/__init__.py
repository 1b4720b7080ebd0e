"""Batch graph loading for Apache AGE.

Entry points live in ``graph_loading.dependencies`` (composition) and
``graph_loading.application`` (GraphLoader, LoadOptions). Value objects
and exceptions live in ``graph_loading.domain``.
"""
