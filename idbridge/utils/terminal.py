"""Terminal Utilities Module."""

import locale
import os
import sys
from functools import lru_cache

import colorama


@lru_cache(maxsize=1)
def supports_utf8() -> bool:
    """Check if the terminal supports UTF-8 encoding.

    Returns:
        bool: True if the terminal supports UTF-8 encoding, False otherwise
    """
    encoding = sys.stdout.encoding or locale.getpreferredencoding(False)
    return encoding.lower().startswith("utf")


@lru_cache(maxsize=1)
def supports_color() -> bool:
    """Check if the terminal supports ANSI color codes.

    Honors the NO_COLOR convention, then falls back to a TTY check. On Windows
    the console must additionally advertise virtual terminal support.

    Returns:
        bool: True if the terminal supports color, False otherwise
    """
    if os.environ.get("NO_COLOR"):
        return False

    is_a_tty = hasattr(sys.stdout, "isatty") and sys.stdout.isatty()
    if not is_a_tty:
        return False

    if sys.platform == "win32":
        return (
            getattr(colorama, "fixed_windows_console", False)
            or "ANSICON" in os.environ
            or "WT_SESSION" in os.environ  # Windows Terminal
            or os.environ.get("TERM_PROGRAM") == "vscode"
        )

    return True
