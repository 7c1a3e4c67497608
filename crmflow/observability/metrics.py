"""Prometheus metrics definitions."""

from prometheus_client import Counter, Histogram

# Trigger metrics
TRIGGERS_RECEIVED = Counter(
    "crmflow_triggers_received_total",
    "Total number of trigger invocations",
    ["trigger"],
)

# Rule metrics
RULES_EVALUATED = Counter(
    "crmflow_rules_evaluated_total",
    "Total number of rule condition evaluations",
    ["trigger"],
)

RULES_FIRED = Counter(
    "crmflow_rules_fired_total",
    "Total number of rules whose conditions passed",
    ["trigger"],
)

RULES_REJECTED = Counter(
    "crmflow_rules_rejected_total",
    "Stored rules rejected at load due to invalid configuration",
)

# Action metrics
ACTIONS_EXECUTED = Counter(
    "crmflow_actions_executed_total",
    "Total action attempts",
    ["action_type", "outcome"],
)

ACTION_LATENCY = Histogram(
    "crmflow_action_latency_seconds",
    "Action handler latency in seconds",
    ["action_type"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)
