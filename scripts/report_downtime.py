"""
Report the primary bot's state to a running downtime handler.

    python scripts/report_downtime.py --url http://downtime-handler:8080 down
    python scripts/report_downtime.py up
"""

import argparse
import sys

import requests


def report(url: str, down: bool, timeout: float = 10.0) -> dict:
    response = requests.post(url.rstrip("/") + "/downtime", json={"down": down}, timeout=timeout)
    response.raise_for_status()
    return response.json()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("state", choices=["down", "up"])
    parser.add_argument("--url", default="http://localhost:8080")
    args = parser.parse_args(argv)

    reply = report(args.url, args.state == "down")
    print(reply)
    return 0 if reply.get("ok") is True else 1


if __name__ == "__main__":
    sys.exit(main())
