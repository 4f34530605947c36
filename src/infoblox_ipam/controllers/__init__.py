"""Infoblox specific controllers: claim handler and pool reconciler."""
