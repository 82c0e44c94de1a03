"""Shared helpers used across appsub subpackages."""
