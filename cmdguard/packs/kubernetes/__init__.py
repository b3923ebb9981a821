"""Kubernetes packs."""
