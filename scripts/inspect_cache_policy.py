#!/usr/bin/env python3
"""Show the cache policy this runtime would apply, and where each value comes from.

Reads the same inputs a probing process does (defines, security file,
environment) and prints the configuration snapshot plus the inspector's view
of the resolver policy, without resolving anything.

Usage:
    python scripts/inspect_cache_policy.py
    python scripts/inspect_cache_policy.py -Dsun.net.inetaddr.ttl=10
    python scripts/inspect_cache_policy.py --security-file /etc/dnsprobe/security.properties --json
"""

import argparse
import json
import os
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

from dnsprobe.context import SECURITY_FILE_ENV, ConfigurationContext
from dnsprobe.errors import StartupError
from dnsprobe.probe.diagnostics import inspect_cache_policy
from dnsprobe.resolver import CachingResolver
from dnsprobe.snapshot import capture

# Load environment variables
load_dotenv()


def main() -> int:
    parser = argparse.ArgumentParser(description="Inspect the effective DNS cache policy")
    parser.add_argument(
        "-D", "--define",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Set a system property (repeatable)",
    )
    parser.add_argument("--security-file", default=None, help=f"Security properties file (default: ${SECURITY_FILE_ENV})")
    parser.add_argument("--sandbox", action="store_true", help="Assume an elevated-trust sandbox is active")
    parser.add_argument("--json", action="store_true", help="Print JSON instead of text")
    args = parser.parse_args()

    try:
        context = ConfigurationContext.from_sources(
            args.define,
            args.security_file or os.environ.get(SECURITY_FILE_ENV),
            sandbox_active=args.sandbox,
        )
    except StartupError as e:
        print(f"Error: {e}")
        return 2

    snapshot = capture(context, label="inspect")
    policy = inspect_cache_policy(CachingResolver(context))

    if args.json:
        print(json.dumps({"snapshot": snapshot.to_dict(), "cache_policy": policy}, indent=2))
        return 0

    print(snapshot.render())
    print()
    print("Resolver cache policy:")
    if not policy["available"]:
        print(f"  unavailable: {policy['reason']}")
    else:
        state = "frozen" if policy["frozen"] else "not yet frozen (preview)"
        print(f"  state: {state}")
        print(f"  ttl: {policy['ttl_display']} (from {policy['ttl_source']})")
        print(f"  negative ttl: {policy['negative_ttl']} (from {policy['negative_ttl_source']})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
