"""
Players that pick moves in a game.
"""

from __future__ import annotations

from abc import ABCMeta, abstractmethod

from numpy.random import PCG64DXSM, default_rng

from .config import MCTSConfig
from .node import ordered_moves
from .policy import visit_distribution
from .search import MonteCarloTreeSearch
from .types import BoardState, Move, Predictor, SearchResult, SearchStats


class Actor(metaclass=ABCMeta):
    """
    One seat at a turn-based board game.

    The game loop asks the actor for a move when it is its turn, then reports every committed
    move, its own and the opponent's, so the actor can follow the position.
    """

    @abstractmethod
    def reset(self):
        """Forget the previous game before the first turn of a new one."""

    @abstractmethod
    def select_move(self, state: BoardState) -> Move:
        """
        Choose the move to play on this turn.

        Parameters
        ----------
        state : BoardState
            Position with this actor to move. It is never terminal.

        Returns
        -------
        Move
            One of ``state.legal_moves()``.
        """

    @abstractmethod
    def stats(self) -> SearchStats:
        """
        Describe how the latest move was chosen.

        Returns
        -------
        SearchStats
            Move distribution and position value behind the latest ``select_move``, used as
            self-play training targets.
        """

    def observe(self, move: Move) -> None:
        """
        Follow a move committed to the board by either seat. Stateless actors ignore it.

        Parameters
        ----------
        move : Move
            The committed move.
        """


class MCTSActor(Actor):
    """
    A player using Monte Carlo Tree Search.

    Attributes
    ----------
    search : MonteCarloTreeSearch
        The search driver.
    temperature_schedule : list[tuple[int, float]] | None
        (move number, temperature) pairs in ascending order. None uses the configured temperature.
    """

    def __init__(
        self,
        predictor: Predictor,
        config: MCTSConfig | None = None,
        temperature_schedule: list[tuple[int, float]] | None = None,
    ):
        self.search = MonteCarloTreeSearch(predictor, config)
        self.temperature_schedule = temperature_schedule
        self.moves_played = 0
        self.result: SearchResult | None = None

    def reset(self):
        """Drop the search tree and the move counter."""
        self.search.reset()
        self.moves_played = 0
        self.result = None

    def temperature(self) -> float:
        """
        Get the move selection temperature for the current move number.

        Returns
        -------
        float
            Temperature value.
        """
        if self.temperature_schedule is None:
            return self.search.config.temperature

        temperature = self.temperature_schedule[0][1]
        for threshold, temp in self.temperature_schedule:
            if self.moves_played >= threshold:
                temperature = temp
        return temperature

    def select_move(self, state: BoardState) -> Move:
        """
        Run a search from the position and play its move.

        The temperature follows the schedule for the number of moves already played.

        Parameters
        ----------
        state : BoardState
            Position with this actor to move.

        Returns
        -------
        Move
            The move selected from the root visit counts.
        """
        self.result = self.search.search(state, temperature=self.temperature())
        return self.result.move

    def observe(self, move: Move) -> None:
        self.moves_played += 1
        self.search.advance(move)

    def stats(self) -> SearchStats:
        """
        Root visit distribution and value of the latest search.

        Returns
        -------
        SearchStats
            Normalized root visit counts and root value of the latest search
        """
        if self.result is None:
            raise ValueError('No search was executed.')
        return SearchStats(
            search_policy=visit_distribution(self.result.visit_counts, temperature=1.0),
            search_value=self.result.value,
        )


class RandomActor(Actor):
    """
    A player picking uniformly among legal moves.
    """

    def __init__(self, seed: int | None = None):
        self.generator = default_rng(PCG64DXSM(seed))
        self._moves: list[Move] = []

    def reset(self):
        self._moves = []

    def select_move(self, state: BoardState) -> Move:
        self._moves = ordered_moves(state.legal_moves())
        if not self._moves:
            raise ValueError('No legal move to select.')
        return self._moves[int(self.generator.integers(len(self._moves)))]

    def stats(self) -> SearchStats:
        if not self._moves:
            raise ValueError('No move was selected.')
        return SearchStats(search_policy={move: 1.0 / len(self._moves) for move in self._moves}, search_value=0.0)
