"""Monitoring: logging setup and the Prometheus metrics sink."""
