"""State/store layer.

This package is the single source of truth for how inbound frames, timer
callbacks and user intents are folded into one deterministic session
snapshot.
"""
