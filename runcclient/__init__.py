"""Client library for the runc container runtime command line."""

__version__ = "0.1.0"

__all__ = [
    "client",
    "command",
    "console",
    "container",
    "events",
    "monitor",
    "options",
    "procio",
    "utils",
]