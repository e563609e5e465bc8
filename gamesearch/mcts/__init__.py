"""
Monte Carlo Tree Search guided by a policy/value predictor.

This module provides:
- Arena-stored search nodes with per-node locks
- PUCT selection and temperature-based move selection (AlphaZero-style)
- A search driver running sequential or threaded simulations
- Model-free predictors and game-playing actors
"""

from .actor import Actor, MCTSActor, RandomActor
from .config import MCTSConfig
from .errors import BoardStateFailure, DoubleExpansionError, PredictorFailure, SearchError, TerminalStateError
from .node import Node, SearchTree
from .predictor import RolloutPredictor, UniformPredictor
from .search import MonteCarloTreeSearch, Phase
from .types import BoardState, Predictor, SearchResult, SearchStats

__all__ = [
    'Actor',
    'BoardState',
    'BoardStateFailure',
    'DoubleExpansionError',
    'MCTSActor',
    'MCTSConfig',
    'MonteCarloTreeSearch',
    'Node',
    'Phase',
    'Predictor',
    'PredictorFailure',
    'RandomActor',
    'RolloutPredictor',
    'SearchError',
    'SearchResult',
    'SearchStats',
    'SearchTree',
    'TerminalStateError',
    'UniformPredictor',
]
