"""Replay a file of transaction events and summarise the findings.

This script demonstrates how to consume the `chainsentry run` JSONL stream
from another program.

Usage:
    python examples/replay_events.py events.jsonl [--bot private-key-compromise ...]
"""

import json
import subprocess
import sys
from collections import Counter


def main():
    """Run the bots over an events file and print findings per alert id."""
    if len(sys.argv) < 2:
        print("usage: replay_events.py EVENTS_FILE [--bot NAME ...]")
        sys.exit(1)

    proc = subprocess.Popen(
        ["chainsentry", "run", *sys.argv[1:]],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    )

    by_alert = Counter()
    for line in proc.stdout:
        event = json.loads(line)
        if event["type"] == "finding":
            finding = event["finding"]
            by_alert[finding["alertId"]] += 1
            print(f"[{finding['severity']}] {finding['alertId']}: {finding['description']}")
            print(f"    tx {event['tx_hash']} (bot {event['bot']})")
        elif event["type"] == "bot_error":
            print(f"bot {event['bot']} failed on {event['tx_hash']}: {event['message']}")
        elif event["type"] == "run_end":
            print(f"\nEvents processed: {event['events_processed']}")
            print(f"Findings: {event['findings']}  Bot errors: {event['bot_errors']}")

    if proc.wait() != 0:
        print(f"Error: {proc.stderr.read()}")
        return

    for alert_id, count in by_alert.most_common():
        print(f"  • {alert_id}: {count}")


if __name__ == "__main__":
    main()
