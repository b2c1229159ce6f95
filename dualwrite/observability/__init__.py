"""
Logging, metrics and telemetry events.
"""
