#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
config.py

Configuration constants and defaults for the commitment reconciler.

Key idea: the engine itself is a pure function of its inputs
------------------------------------------------------------
Nothing in this module is mutated at runtime. The values below are read once at
import time (mostly from environment variables) and then passed explicitly into
the cycle / client constructors, so two cycles can run side by side with
different settings.

Environment variables all share the COMMITMENTS_ prefix.
"""

import os

# ---------------------------------------------------------------------
# Control plane API
# ---------------------------------------------------------------------
# API_URL:
# - Base URL of the control plane that stores imported commitments.
# - Override with COMMITMENTS_API_URL (e.g. a staging environment).
API_URL = os.getenv("COMMITMENTS_API_URL", "https://api.cast.ai")

# API_TOKEN_ENV:
# - Name of the environment variable holding the API key.
# - The key itself is never stored in this module.
API_TOKEN_ENV = "COMMITMENTS_API_TOKEN"

# API_KEY_HEADER:
# - Header used to authenticate every request.
API_KEY_HEADER = "X-API-Key"

# ---------------------------------------------------------------------
# Apply phase
# ---------------------------------------------------------------------
# DEFAULT_CONCURRENCY:
# - Max number of in-flight InventoryAPI calls inside one kind group
#   (DELETE / CREATE / UPDATE).
DEFAULT_CONCURRENCY = int(os.getenv("COMMITMENTS_CONCURRENCY", "4"))

# DEFAULT_CALL_TIMEOUT:
# - Per-call deadline in seconds. A call exceeding it is a TransportError and
#   aborts the cycle.
DEFAULT_CALL_TIMEOUT = float(os.getenv("COMMITMENTS_CALL_TIMEOUT", "60"))

# DEFAULT_AUTHORITATIVE:
# - When true, remote commitments that are absent from the inputs are deleted.
# - Default is false: they are only reported as orphans.
DEFAULT_AUTHORITATIVE = os.getenv("COMMITMENTS_AUTHORITATIVE", "").strip().lower() in {
    "1",
    "true",
    "yes",
}

# ---------------------------------------------------------------------
# HTTP retry policy (applied by the HTTP client, never by the engine)
# ---------------------------------------------------------------------
HTTP_MAX_RETRIES = int(os.getenv("COMMITMENTS_HTTP_MAX_RETRIES", "3"))
HTTP_BASE_DELAY = float(os.getenv("COMMITMENTS_HTTP_BASE_DELAY", "1.0"))
HTTP_MAX_DELAY = float(os.getenv("COMMITMENTS_HTTP_MAX_DELAY", "30.0"))

# Status codes worth retrying at the transport layer.
HTTP_RETRY_STATUSES = (429, 502, 503, 504)

# ---------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------
# BODY_EXCERPT_CHARS:
# - How much of an error response body is kept in the report.
BODY_EXCERPT_CHARS = 500

# RUNS_DIR:
# - Root folder for per-run artifacts (trace.jsonl, console.log, report.md, report.json).
RUNS_DIR = os.getenv("COMMITMENTS_RUNS_DIR", "runs")

# TRACE_ENABLED:
# - Write runs/<prefix>/trace.jsonl with one event per cycle phase.
# - Set COMMITMENTS_TRACE=0 to disable.
TRACE_ENABLED = os.getenv("COMMITMENTS_TRACE", "1").strip().lower() not in {"0", "false", "no"}

# DEFAULT_LOG_LEVEL:
# - Used by the CLI when --log-level is not given.
DEFAULT_LOG_LEVEL = os.getenv("COMMITMENTS_LOG_LEVEL", "INFO")

# ---------------------------------------------------------------------
# Domain enumerations
# ---------------------------------------------------------------------
# GCP CUD plans as exported by the Compute API. The plural spellings show up
# in some billing exports and are accepted as-is.
GCP_PLANS = (
    "TWELVE_MONTH",
    "THIRTY_SIX_MONTH",
    "TWELVE_MONTHS",
    "THIRTY_SIX_MONTHS",
)

# Azure reservation terms (ISO-8601 periods).
AZURE_TERMS = ("P1Y", "P3Y", "P5Y")

# The control plane reports Azure terms with its own names.
AZURE_TERM_ALIASES = {
    "ONE_YEAR": "P1Y",
    "THREE_YEAR": "P3Y",
    "FIVE_YEAR": "P5Y",
}

COMMITMENT_STATUSES = ("ACTIVE", "INACTIVE")

SCALING_STRATEGIES = ("Default", "CPUBased", "RamBased")
DEFAULT_SCALING_STRATEGY = "Default"
