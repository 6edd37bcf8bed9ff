"""
CLI 진입점

실행 방법:
    python -m cli <command> [options]
"""

import sys

from cli.app import main

if __name__ == "__main__":
    sys.exit(main())
