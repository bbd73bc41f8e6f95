"""Rich consoles and the style theme shared by dicomancer CLI output."""

from __future__ import annotations

import sys

from rich.console import Console
from rich.theme import Theme

# Patient names and the value ellipsis are not representable in every
# Windows code page.
try:
    sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    sys.stderr.reconfigure(encoding="utf-8", errors="replace")
except (AttributeError, OSError):
    pass

THEME = Theme(
    {
        "tag": "bold",
        "vr": "cyan",
        "alias": "green",
        "number": "bold",
        "partial": "yellow",
        "issue": "yellow",
        "failure": "red",
    }
)

console = Console(theme=THEME)
err_console = Console(stderr=True, theme=THEME)
