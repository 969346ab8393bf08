"""HTTP surface for notification delivery."""
