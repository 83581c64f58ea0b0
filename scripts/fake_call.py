from __future__ import annotations

import argparse
import json

import requests

# Shape of a Vapi end-of-call-report server message
SAMPLE_REPORT = {
    "message": {
        "type": "end-of-call-report",
        "status": "ended",
        "durationSeconds": 94,
        "call": {"customer": {"number": "+919876543210", "name": "Ravi"}},
        "artifact": {"transcript": "AI: Hello, what would you like?\nUser: Two paneer rolls please."},
        "analysis": {"structuredData": {"order": "Paneer roll", "quantity": 2, "amount": 240}},
    }
}


def main() -> None:
    parser = argparse.ArgumentParser(description="Post a sample call event to a local webhook handler")
    parser.add_argument("business_id", help="app_users.id of an active business")
    parser.add_argument("--url", default="http://localhost:8000/functions/v1/webhook-handler")
    parser.add_argument("--flat", action="store_true", help="send the flat payload shape instead of a Vapi report")
    args = parser.parse_args()

    payload = SAMPLE_REPORT
    if args.flat:
        payload = {
            "caller_number": "+919876543210",
            "call_duration": 94,
            "call_status": "completed",
            "transcript": "Two paneer rolls please.",
        }

    try:
        response = requests.post(args.url, params={"business_id": args.business_id}, json=payload, timeout=10)
    except requests.RequestException as e:
        print(f"Error: {e}")
        print("Is the server running? (uvicorn vass.main:app --reload)")
        raise SystemExit(1)

    print(f"Status Code: {response.status_code}")
    try:
        print(json.dumps(response.json(), indent=2))
    except ValueError:
        print(response.text)


if __name__ == "__main__":
    main()
