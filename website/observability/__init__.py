"""Observability helpers for the site server.

Request IDs + structlog contextvars for application logs, a combined-format access log file,
and Prometheus request metrics.
"""
