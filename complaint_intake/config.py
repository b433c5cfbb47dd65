"""
Configuration constants for the complaint intake system

Module-level constants with environment overrides for the values a
deployment is expected to change (model, timeout, output file).
"""

import os


def _env_int(name, default):
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer, got {value!r}")


def _env_float(name, default):
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be a number, got {value!r}")


def _env_bool(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


# ========================
# Dialogue budgets
# ========================

# Maximum distinct fields asked in one conversation
QUESTION_BUDGET = _env_int("COMPLAINT_QUESTION_BUDGET", 5)

# Asks per field before it is force-skipped as unknown
ATTEMPT_CEILING = 3

# Attempt count stored for a skipped field (never selected again)
SKIPPED_ATTEMPTS = 99

# Bullet sub-questions in the opening bundled question
MAX_BUNDLED_QUESTIONS = 4


# ========================
# Validation limits
# ========================

FUTURE_DATE_TOLERANCE_DAYS = 3
MAX_VALID_YEAR = 2050
HIGH_BILL_THRESHOLD = 1000


# ========================
# Hospital
# ========================

HOSPITAL_CONFIG = {
    'name': os.environ.get("COMPLAINT_HOSPITAL_NAME", "Singapore General Hospital"),
    'short_name': os.environ.get("COMPLAINT_HOSPITAL_SHORT_NAME", "SGH"),
    'feedback_team': "Patient Relations",
}


# ========================
# Language model
# ========================

MODEL_NAME = os.environ.get("COMPLAINT_MODEL_NAME", "mistralai/Mistral-7B-Instruct-v0.2")
LOAD_IN_4BIT = _env_bool("COMPLAINT_LOAD_IN_4BIT", True)
MODEL_DEVICE = os.environ.get("COMPLAINT_MODEL_DEVICE", "cuda")

# Seconds before a port call is abandoned and treated as a failure
PORT_TIMEOUT_SECONDS = _env_float("COMPLAINT_PORT_TIMEOUT", 30.0)

# Wall-clock cap on one model.generate() call, below the port timeout
GENERATION_MAX_SECONDS = _env_float("COMPLAINT_GENERATION_MAX_SECONDS", 25.0)


# ========================
# Output
# ========================

COMPLAINTS_FILE = os.environ.get("COMPLAINTS_FILE", "outputs/complaints.ndjson")
METRICS_FILE = os.environ.get("COMPLAINT_METRICS_FILE", "outputs/metrics.ndjson")
LOG_LEVEL = os.environ.get("COMPLAINT_LOG_LEVEL", "INFO")
