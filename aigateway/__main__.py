#!/usr/bin/env python3
"""Entry point for the AI gateway CLI."""

import sys
from aigateway.cli.main import main

if __name__ == "__main__":
    sys.exit(main())
