#!/usr/bin/env python3
"""
Send a test ambulance dispatch to a running API.

Usage:
    python scripts/send_test_dispatch.py 28.6139 77.2090 "Cardiac"
    python scripts/send_test_dispatch.py 28.6139 77.2090 "Accident" --radius 10 --address "CP, Delhi"

Environment Variables:
    MEDGO_TOKEN: Bearer token of a customer (see scripts/issue_dev_token.py)
    API_URL: Base API URL (default: http://localhost:8000)
"""

import argparse
import json
import os
import sys

import dotenv
import requests

dotenv.load_dotenv()


def send_dispatch(
    lat: float,
    lng: float,
    emergency_type: str,
    description: str = "",
    pickup_address: str = "",
    radius_km: float | None = None,
) -> dict:
    """Post a dispatch request and return the JSON response."""
    token = os.getenv("MEDGO_TOKEN")
    if not token:
        print("Error: MEDGO_TOKEN environment variable not set", file=sys.stderr)
        sys.exit(1)

    api_url = os.getenv("API_URL", "http://localhost:8000")
    url = f"{api_url}/api/v1/dispatch"

    payload: dict = {
        "lat": lat,
        "lng": lng,
        "emergency_type": emergency_type,
        "description": description,
        "pickup_address": pickup_address,
    }
    if radius_km is not None:
        payload["radius_km"] = radius_km

    try:
        response = requests.post(
            url,
            json=payload,
            headers={"Authorization": f"Bearer {token}"},
            timeout=30,
        )
        response.raise_for_status()
        return response.json()
    except requests.exceptions.HTTPError as e:
        print(f"HTTP Error: {e}", file=sys.stderr)
        print(f"Response: {e.response.text}", file=sys.stderr)
        sys.exit(1)
    except requests.exceptions.RequestException as e:
        print(f"Request Error: {e}", file=sys.stderr)
        sys.exit(1)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Send a test ambulance dispatch")
    parser.add_argument("lat", type=float, help="Pickup latitude")
    parser.add_argument("lng", type=float, help="Pickup longitude")
    parser.add_argument("emergency_type", help="Emergency type, e.g. Cardiac")
    parser.add_argument("--description", default="", help="Free-text details")
    parser.add_argument("--address", default="", help="Pickup address")
    parser.add_argument("--radius", type=float, default=None, help="Search radius in km")
    parser.add_argument("--json", action="store_true", help="Print the raw JSON response")

    args = parser.parse_args()

    result = send_dispatch(
        args.lat,
        args.lng,
        args.emergency_type,
        args.description,
        args.address,
        args.radius,
    )

    if args.json:
        print(json.dumps(result, indent=2))
        return

    marker = "✅" if result["success"] else "⚠️"
    print(f"{marker} {result['message']}")
    print(f"   Request:  {result['request_id']}")
    print(f"   Policy:   {result['policy']} (radius {result['radius_km']})")
    print(f"   Notified: {result['notified_count']} of {result['drivers_checked']} checked")
    print(
        f"   Channels: email={result['emails_sent']} sms={result['sms_sent']} "
        f"push={result['push_sent']} operator={result['operator_alerted']}"
    )


if __name__ == "__main__":
    main()
