"""Prometheus metrics for monitoring score distribution, eligibility rates, and data-source health"""

from prometheus_client import Counter, Histogram, Gauge

# Assessment metrics
assessment_counter = Counter(
    "credit_assessment_total",
    "Total credit assessments completed",
    ["risk_category", "outcome"],  # LOW | MEDIUM | HIGH, eligible | ineligible
)

credit_score_histogram = Histogram(
    "credit_score",
    "Distribution of issued credit scores",
    buckets=[20, 40, 60, 70, 80, 90, 100],
)

assessment_duration_histogram = Histogram(
    "credit_assessment_duration_seconds",
    "Time spent on a full assessment, fetch included",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# Transaction source metrics
source_fetch_failures_counter = Counter(
    "upi_fetch_failures_total",
    "Failed UPI platform calls",
)

source_fallback_counter = Counter(
    "upi_fallback_total",
    "Assessments that used synthetic transactions",
)

# Reassessment sweep
sweep_merchants_counter = Counter(
    "reassessment_merchants_total",
    "Merchants processed by the reassessment sweep",
    ["result"],  # succeeded | failed
)

# Rules
rules_reload_counter = Counter(
    "scoring_rules_reload_total",
    "Rule set reload attempts",
    ["result"],  # success | failure
)

rules_config_warning_counter = Counter(
    "scoring_rules_config_warnings_total",
    "Rule configuration problems found at load or evaluation time",
)

rules_info_gauge = Gauge(
    "scoring_rules_components",
    "Number of scoring components in the active rule set",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_assessment(risk_category: str, eligible: bool, credit_score: int, duration_seconds: float) -> None:
    """Record assessment metrics for monitoring eligibility rates and score distribution"""
    outcome = "eligible" if eligible else "ineligible"
    assessment_counter.labels(risk_category=risk_category, outcome=outcome).inc()
    credit_score_histogram.observe(credit_score)
    assessment_duration_histogram.observe(duration_seconds)
