"""Conversation and gating state shared by all chat handlers."""
