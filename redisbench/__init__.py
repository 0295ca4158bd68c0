"""Distributed Redis latency and throughput benchmark."""

__version__ = "0.1.0"
