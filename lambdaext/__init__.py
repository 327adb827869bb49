"""Parse Lambda extension events, logs and telemetry, and build Extensions API requests."""

__version__ = "0.1.0"

__all__ = ["events", "logs", "requests", "telemetry"]