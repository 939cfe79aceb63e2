#
# src/suitetrack/protocol/__init__.py
#
"""
Runner event protocol: wire records and the decoder that applies them.
"""
from .commands import KNOWN_COMMANDS, Command, parse_command_line
from .decoder import EventDecoder

__all__ = [
    "KNOWN_COMMANDS",
    "Command",
    "EventDecoder",
    "parse_command_line",
]

# 🔼⚙️
