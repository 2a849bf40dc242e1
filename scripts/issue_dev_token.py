#!/usr/bin/env python3
"""
Mint an access token for local development.

Usage:
    python scripts/issue_dev_token.py <user_id>
    python scripts/issue_dev_token.py <user_id> --minutes 480
"""

import argparse
import sys
from datetime import timedelta
from uuid import UUID

from medgo.core.security import create_access_token


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Issue a JWT for a MedGo user id")
    parser.add_argument("user_id", help="User UUID (the token subject)")
    parser.add_argument("--minutes", type=int, default=60, help="Lifetime in minutes")
    args = parser.parse_args()

    try:
        user_id = UUID(args.user_id)
    except ValueError:
        print(f"Error: not a UUID: {args.user_id}", file=sys.stderr)
        sys.exit(1)

    print(create_access_token(user_id, timedelta(minutes=args.minutes)))


if __name__ == "__main__":
    main()
