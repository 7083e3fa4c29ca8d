"""Prefixed identifiers for every row and request this service creates."""

import secrets

GRADE_REPORT = "grd_"
SIMULATION_RUN = "run_"
SIMULATION_EVENT = "sev_"
REQUEST = "req_"
REQUEST_TELEMETRY = "rqt_"
AUDIT_LOG = "aud_"
JOB_TELEMETRY = "jbt_"


def generate_id(prefix: str) -> str:
    """Return ``prefix`` followed by 16 random hex characters, e.g. ``grd_a1b2c3d4e5f6a7b8``."""
    return f"{prefix}{secrets.token_hex(8)}"
