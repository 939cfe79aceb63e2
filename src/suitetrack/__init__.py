#
# src/suitetrack/__init__.py
#
"""
suitetrack: live pass/fail/pending state for a hierarchical test suite
driven by an out-of-process test runner.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("suitetrack")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

# 🔼⚙️
