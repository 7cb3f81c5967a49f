"""Realtime discussion channel: registry, router, gateway and client agent."""
