"""
Tic-tac-toe on a 3x3 board.

Cells are numbered 0 to 8 row by row. The first player (X) is stored as 1, the second (O)
as -1 and empty cells as 0.
"""

from __future__ import annotations

from dataclasses import dataclass

from numpy import array, fliplr, trace

SIZE = 3
EMPTY_BOARD: tuple[int, ...] = (0,) * (SIZE * SIZE)

# ##>: Rendering of cell values.
SYMBOLS = {1: 'X', -1: 'O', 0: '.'}


def winner(board: tuple[int, ...]) -> int:
    """
    Find the player owning a full line.

    Parameters
    ----------
    board : tuple[int, ...]
        The nine cells of the board.

    Returns
    -------
    int
        1 or -1 for the winning player, 0 if no line is complete.
    """
    grid = array(board).reshape(SIZE, SIZE)
    sums = [*grid.sum(axis=0), *grid.sum(axis=1), trace(grid), trace(fliplr(grid))]
    if SIZE in sums:
        return 1
    if -SIZE in sums:
        return -1
    return 0


@dataclass(frozen=True)
class TicTacToe:
    """
    Immutable tic-tac-toe position.

    Attributes
    ----------
    board : tuple[int, ...]
        The nine cells, row by row.
    player : int
        The player to move, 1 or -1.
    """

    board: tuple[int, ...] = EMPTY_BOARD
    player: int = 1

    @classmethod
    def from_string(cls, text: str) -> TicTacToe:
        """
        Build a position from nine characters among ``X``, ``O`` and ``.``.

        The player to move is deduced from the number of stones.

        Parameters
        ----------
        text : str
            The board, row by row. Whitespace is ignored.

        Returns
        -------
        TicTacToe
            The position.
        """
        cells = [char for char in text.upper() if not char.isspace()]
        if len(cells) != SIZE * SIZE:
            raise ValueError(f'Expected {SIZE * SIZE} cells, got {len(cells)}.')

        values = {symbol: value for value, symbol in SYMBOLS.items()}
        try:
            board = tuple(values[char] for char in cells)
        except KeyError as error:
            raise ValueError(f'Unknown cell symbol {error.args[0]!r}.') from error

        crosses, noughts = board.count(1), board.count(-1)
        if crosses - noughts not in (0, 1):
            raise ValueError('X moves first, so X has as many or one more stone than O.')
        return cls(board=board, player=1 if crosses == noughts else -1)

    def legal_moves(self) -> list[int]:
        if self.is_terminal():
            return []
        return [cell for cell, value in enumerate(self.board) if value == 0]

    def apply_move(self, move: int) -> TicTacToe:
        if not 0 <= move < SIZE * SIZE or self.board[move] != 0:
            raise ValueError(f'Illegal move {move!r}.')
        if self.is_terminal():
            raise ValueError('The game is over.')

        board = list(self.board)
        board[move] = self.player
        return TicTacToe(board=tuple(board), player=-self.player)

    def is_terminal(self) -> bool:
        return winner(self.board) != 0 or 0 not in self.board

    def outcome(self) -> float:
        """
        Result for the player to move.

        Returns
        -------
        float
            -1 if the previous player completed a line, 0 for a draw.
        """
        if not self.is_terminal():
            raise ValueError('The game is not over.')
        return float(winner(self.board) * self.player)

    def __str__(self) -> str:
        rows = [self.board[row * SIZE : (row + 1) * SIZE] for row in range(SIZE)]
        return '\n'.join(''.join(SYMBOLS[value] for value in row) for row in rows)
