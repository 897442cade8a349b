"""Adapters binding the domain ports to concrete technology."""
