"""
Monte Carlo Tree Search for board-game agents.
"""

__version__ = '0.1.0'
