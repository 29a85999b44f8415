"""
Tianxia - a turn-based territory-conquest card game for 2-4 players.
"""

__version__ = "1.0.0"
