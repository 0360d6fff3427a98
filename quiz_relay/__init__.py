"""
Quiz submission relay.

Receives completed quiz submissions over HTTP, formats an instructor report
and forwards it to a Telegram chat.
"""

__version__ = "1.0.0"
