"""Health probe resources for Kubernetes liveness and readiness checks."""
