#
# src/suitetrack/reporters/__init__.py
#
"""
Runner-side plugins that emit the suitetrack event protocol.
"""

# 🔼⚙️
