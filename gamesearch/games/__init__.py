"""
Board games implementing the ``BoardState`` protocol.
"""

from .tictactoe import TicTacToe, winner

__all__ = ['TicTacToe', 'winner']
