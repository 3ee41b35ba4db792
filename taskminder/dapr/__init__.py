"""Dapr sidecar integration."""
