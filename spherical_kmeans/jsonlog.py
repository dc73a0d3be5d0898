"""
Structured JSON event log for command-line runs.

Each record is one line on stdout:
    {"ts": 1640995200.0, "event": "train_start", "n_atoms": 100, "seed": 0}
"""

import json, sys, time


def log(event: str, **fields):
    rec = {"ts": time.time(), "event": event}
    rec.update(fields)
    sys.stdout.write(json.dumps(rec, default=str) + "\n")
    sys.stdout.flush()
