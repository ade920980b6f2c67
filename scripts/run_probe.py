#!/usr/bin/env python3
"""Run a single probing session in this process.

Prints the configuration snapshots, one line per query and the structured
CONFIG/RESULTS blocks, exactly as a matrix run would capture them.

Usage:
    python scripts/run_probe.py www.example.com 2 30
    python scripts/run_probe.py -Dnetworkaddress.cache.ttl=5 www.example.com 1 20
    DNS_SET_SECURITY_PROPERTY=true DNS_CACHE_TTL=5 python scripts/run_probe.py
"""

import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

from dnsprobe.probe.cli import main

# Load environment variables
load_dotenv()


if __name__ == "__main__":
    sys.exit(main())
