"""Observability: structured logging, request context and metrics.

Provides standardized observability primitives using structlog for logging
and Prometheus for metrics.
"""
