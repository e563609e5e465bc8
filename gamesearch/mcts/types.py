"""
Types shared by the search components and their collaborators.
"""

from __future__ import annotations

from collections.abc import Hashable, Mapping, Sequence
from typing import NamedTuple, Protocol, runtime_checkable

# ##>: A move only needs to be hashable; games pick their own representation.
Move = Hashable


@runtime_checkable
class BoardState(Protocol):
    """
    A game position, as seen by the search.

    Applying a move never mutates the receiver: the search keeps every state it visited.
    """

    def legal_moves(self) -> Sequence[Move]:
        """Legal moves in canonical order."""

    def apply_move(self, move: Move) -> BoardState:
        """Return the state reached by playing ``move``."""

    def is_terminal(self) -> bool:
        """Whether the game is over."""

    def outcome(self) -> float:
        """Final result from the perspective of the player to move. Only defined when terminal."""


@runtime_checkable
class Predictor(Protocol):
    """A policy/value evaluator of board states."""

    def evaluate(self, state: BoardState) -> tuple[Mapping[Move, float], float]:
        """
        Evaluate a state.

        Returns
        -------
        tuple[Mapping[Move, float], float]
            Move probabilities (only legal moves are read) and a value estimate from the
            perspective of the player to move.
        """


class Prediction(NamedTuple):
    """
    A validated predictor output.
    """

    probabilities: dict[Move, float]
    value: float


class SearchResult(NamedTuple):
    """
    Outcome of one search.

    Attributes
    ----------
    move : Move
        The selected move.
    visit_counts : dict[Move, int]
        Visit count of every legal root move, in canonical order.
    value : float
        Mean value of the root, from the perspective of the player to move.
    simulations : int
        Simulations completed during this search.
    failures : int
        Simulations discarded after a collaborator failure.
    """

    move: Move
    visit_counts: dict[Move, int]
    value: float
    simulations: int
    failures: int


class SearchStats(NamedTuple):
    """
    Statistics kept by an actor after each decision.
    """

    search_policy: dict[Move, float]
    search_value: float
