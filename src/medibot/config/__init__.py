"""
Configuration loading for Medibot.
"""
