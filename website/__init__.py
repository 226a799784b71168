"""Static site server: asset delivery with access logs, health checks and Prometheus metrics."""
