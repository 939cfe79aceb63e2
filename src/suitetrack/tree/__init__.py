#
# src/suitetrack/tree/__init__.py
#
"""
Test tree sub-package: node models, aggregation rule and the tree store.
"""
from .aggregate import derive_suite_state
from .nodes import ROOT_ID, Node, RootSuite, StateMap, SuiteNode, TestNode
from .store import ChangeHandler, TestTree

__all__ = [
    "ROOT_ID",
    "ChangeHandler",
    "Node",
    "RootSuite",
    "StateMap",
    "SuiteNode",
    "TestNode",
    "TestTree",
    "derive_suite_state",
]

# 🔼⚙️
