"""Prometheus counters exposed at ``/metrics``."""
from __future__ import annotations

from prometheus_client import Counter

ANALYSES_TOTAL = Counter(
    "vibely_analyses_total",
    "Successful analyses by transcript source",
    ["source"],
)
CHAT_TURNS_TOTAL = Counter(
    "vibely_chat_turns_total",
    "Completed chat turns",
    ["with_context"],
)
FAILURES_TOTAL = Counter(
    "vibely_failures_total",
    "Failed requests by error kind",
    ["kind"],
)
