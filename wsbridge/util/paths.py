"""Locating config.json for both source checkouts and frozen executables."""

import os
import sys


def is_frozen() -> bool:
    return getattr(sys, "frozen", False)


def get_runtime_path() -> str:
    """
    Directory that holds the user's config.json.

    The executable's directory for a frozen bundle, otherwise the
    current working directory.
    """
    if is_frozen():
        return os.path.dirname(sys.executable)
    return os.getcwd()
