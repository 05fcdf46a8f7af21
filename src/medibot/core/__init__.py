"""
Core data models shared across Medibot.
"""
