"""Gateways to downstream services.

Each gateway pairs a remote lookup with the resilience policy that matches
the business criticality of its data.
"""
