"""Fixed reference time shared by tests that depend on "now"."""

from datetime import datetime

FIXED_NOW = datetime(2025, 1, 7, 12, 0, 0)
