"""
Entry point for module execution (``python -m puppet_deptool``).

This module delegates execution to the CLI handler in ``puppet_deptool.cli.__main__``.
"""

import sys
from puppet_deptool.cli.__main__ import main

if __name__ == "__main__":
  sys.exit(main())
