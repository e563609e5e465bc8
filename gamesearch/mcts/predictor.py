"""
Predictor helpers and model-free predictors.

Learned policy/value networks plug into the search through the ``Predictor`` protocol. This
module validates what any predictor returns and provides two predictors that need no model:
uniform priors with a fixed value, and uniform priors with a value from random playouts.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from math import isfinite

from numpy.random import PCG64DXSM, default_rng

from .errors import PredictorFailure
from .types import BoardState, Move, Prediction


def validate_prediction(output: object, legal_moves: Iterable[Move]) -> Prediction:
    """
    Check a predictor output and keep the probabilities of legal moves.

    Parameters
    ----------
    output : object
        Whatever ``Predictor.evaluate`` returned.
    legal_moves : Iterable[Move]
        Legal moves of the evaluated state.

    Returns
    -------
    Prediction
        Probabilities of the legal moves (missing moves are 0) and the value estimate.

    Raises
    ------
    PredictorFailure
        If the output is missing or malformed.
    """
    if output is None:
        raise PredictorFailure('Predictor returned no result.')

    try:
        probabilities, value = output
    except (TypeError, ValueError) as error:
        raise PredictorFailure('Predictor must return a (probabilities, value) pair.') from error

    if not isinstance(probabilities, Mapping):
        raise PredictorFailure(f'Probabilities must be a mapping, got {type(probabilities).__name__}.')

    try:
        value = float(value)
    except (TypeError, ValueError) as error:
        raise PredictorFailure(f'Value estimate is not a number: {value!r}.') from error
    if not isfinite(value):
        raise PredictorFailure(f'Value estimate is not finite: {value}.')

    masked = {}
    for move in legal_moves:
        prob = float(probabilities.get(move, 0.0))
        if not isfinite(prob) or prob < 0:
            raise PredictorFailure(f'Invalid probability {prob} for move {move!r}.')
        masked[move] = prob

    return Prediction(probabilities=masked, value=value)


class UniformPredictor:
    """
    Uniform priors over legal moves and a fixed value estimate.
    """

    def __init__(self, value: float = 0.0):
        self.value = value

    def evaluate(self, state: BoardState) -> tuple[dict[Move, float], float]:
        moves = list(state.legal_moves())
        if not moves:
            return {}, self.value
        return {move: 1.0 / len(moves) for move in moves}, self.value


class RolloutPredictor:
    """
    Uniform priors and a value estimated from random playouts.

    Attributes
    ----------
    playouts : int
        Number of random games played from each evaluated state.
    max_depth : int
        Plies after which an unfinished playout counts as a draw.
    alternating : bool
        Whether the player to move alternates at every ply.
    """

    def __init__(self, playouts: int = 1, max_depth: int = 200, alternating: bool = True, seed: int | None = None):
        if playouts < 1:
            raise ValueError(f'playouts must be at least 1, got {playouts}.')
        self.playouts = playouts
        self.max_depth = max_depth
        self.alternating = alternating
        self.generator = default_rng(PCG64DXSM(seed))

    def _playout(self, state: BoardState) -> float:
        """
        Play random moves until the game ends.

        Returns
        -------
        float
            Outcome from the perspective of the player to move in ``state``.
        """
        depth = 0
        while not state.is_terminal():
            if depth >= self.max_depth:
                return 0.0
            moves = list(state.legal_moves())
            if not moves:
                return 0.0
            state = state.apply_move(moves[int(self.generator.integers(len(moves)))])
            depth += 1

        # ##>: The outcome is given for the player to move at the end; bring it back to the start.
        outcome = float(state.outcome())
        if self.alternating and depth % 2 == 1:
            outcome = -outcome
        return outcome

    def evaluate(self, state: BoardState) -> tuple[dict[Move, float], float]:
        moves = list(state.legal_moves())
        value = sum(self._playout(state) for _ in range(self.playouts)) / self.playouts
        if not moves:
            return {}, value
        return {move: 1.0 / len(moves) for move in moves}, value
