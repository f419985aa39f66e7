"""
Utility helpers shared across the relay.
"""
