#!/usr/bin/env python3
"""
Entry point for PyInstaller executable.
Starts the WebSocket/TCP bridge from the command line arguments.
"""

import os
import sys

from wsbridge.util.paths import get_runtime_path, is_frozen


def main():
    # Relative paths (config.json) resolve next to the executable
    if is_frozen():
        os.chdir(get_runtime_path())

    # Settings are loaded on import, so import only after the chdir
    from wsbridge.cli import bridge_main

    return bridge_main()


if __name__ == "__main__":
    sys.exit(main())
