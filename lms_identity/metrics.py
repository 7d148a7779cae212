"""Prometheus instruments exported on ``/metrics``."""

from __future__ import annotations

from prometheus_client import Counter

RESOLUTIONS = Counter(
    "lms_identity_resolutions_total",
    "User reference resolutions by reference kind and outcome.",
    ["kind", "outcome"],
)

STORE_ERRORS = Counter(
    "lms_identity_store_errors_total",
    "Account store failures absorbed by the resolver.",
    ["operation"],
)
