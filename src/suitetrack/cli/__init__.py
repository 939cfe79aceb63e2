#
# src/suitetrack/cli/__init__.py
#
