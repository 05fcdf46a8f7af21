"""
Medibot: a medical chatbot backend backed by Gemini.
"""

__version__ = "0.1.0"
