"""
Pocket-Agent - a tool-using AI assistant with persistent, self-compacting sessions.
"""

__version__ = "0.1.0"
