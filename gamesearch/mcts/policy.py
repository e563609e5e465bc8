"""
Selection rules of the search.

This module provides the PUCT score used to walk down the tree, the final move selection at
the root with temperature-based sampling, and the root exploration noise.
"""

from __future__ import annotations

from collections.abc import Mapping
from math import sqrt

import numpy as np
from numpy.random import Generator

from .config import MCTSConfig
from .node import Node, SearchTree
from .types import Move


def child_value(child: Node | None, config: MCTSConfig) -> float:
    """
    Value of a child from the perspective of the player choosing it.

    Parameters
    ----------
    child : Node | None
        The child node, or None if it was never created.
    config : MCTSConfig
        Search configuration.

    Returns
    -------
    float
        Mean value of the child, negated for alternating games. Each virtual loss counts as a
        lost visit (-1) for the player choosing the child. Unvisited children get
        ``config.unvisited_value``.
    """
    if child is None:
        return config.unvisited_value

    visits = child.visit_count + child.virtual_loss
    if visits == 0:
        return config.unvisited_value

    value_sum = -child.value_sum if config.alternating else child.value_sum
    return (value_sum - child.virtual_loss) / visits


def puct_score(parent: Node, prior: float, child: Node | None, config: MCTSConfig) -> float:
    """
    Score a child with the PUCT formula.

    Parameters
    ----------
    parent : Node
        The expanded parent node.
    prior : float
        Prior probability of the move leading to the child.
    child : Node | None
        The child node, or None if it was never created.
    config : MCTSConfig
        Search configuration.

    Returns
    -------
    float
        The PUCT score.

    Notes
    -----
    The PUCT formula is: Q(s,a) + c_puct * P(s,a) * sqrt(N(s)) / (1 + N(s,a))
    where:
    - Q(s,a) is the mean value of the child, seen from the parent
    - P(s,a) is the prior probability of the move
    - N(s) is the visit count of the parent
    - N(s,a) is the visit count of the child
    - c_puct is the exploration constant
    """
    parent_visits = parent.visit_count + parent.virtual_loss
    child_visits = 0 if child is None else child.visit_count + child.virtual_loss
    exploration = config.exploration_constant * prior * sqrt(parent_visits) / (1 + child_visits)
    return child_value(child, config) + exploration


def select_child(tree: SearchTree, index: int, config: MCTSConfig) -> Move:
    """
    Select the move with the highest PUCT score.

    Ties go to the first move in canonical order.

    Parameters
    ----------
    tree : SearchTree
        The search tree.
    index : int
        Index of an expanded node.
    config : MCTSConfig
        Search configuration.

    Returns
    -------
    Move
        The selected move.

    Raises
    ------
    ValueError
        If the node is not expanded.
    """
    node = tree[index]
    if not node.expanded:
        raise ValueError('Cannot select a child of an unexpanded node.')

    best_move = None
    best_score = float('-inf')
    for move, prior in node.priors.items():
        child_index = node.children.get(move)
        child = tree[child_index] if child_index is not None else None
        score = puct_score(node, prior, child, config)
        if score > best_score:
            best_score = score
            best_move = move
    return best_move


def root_visit_counts(tree: SearchTree) -> dict[Move, int]:
    """Visit count of every legal root move, 0 for moves never selected."""
    root = tree.root
    return {
        move: tree[root.children[move]].visit_count if move in root.children else 0 for move in root.priors
    }


def visit_distribution(visit_counts: Mapping[Move, float], temperature: float = 1.0) -> dict[Move, float]:
    """
    Compute move probabilities from visit counts.

    Parameters
    ----------
    visit_counts : Mapping[Move, float]
        Visit count (or any non-negative weight) of each move, in canonical order.
    temperature : float
        Sampling sharpness.
        - 0.0: one-hot on the most visited move, first in canonical order on ties
        - 1.0: proportional to visit counts
        - >1.0: closer to uniform

    Returns
    -------
    dict[Move, float]
        Probability of each move, proportional to ``count ** (1 / temperature)``.

    Raises
    ------
    ValueError
        If there is no move.
    """
    if not visit_counts:
        raise ValueError('Cannot compute a distribution over zero moves.')

    moves = list(visit_counts)
    counts = np.array([visit_counts[move] for move in moves], dtype=np.float64)

    # ##>: Without any visit every move is equally likely.
    if counts.sum() <= 0:
        return {move: 1.0 / len(moves) for move in moves}

    if temperature == 0.0:
        best = int(np.argmax(counts))
        return {move: 1.0 if i == best else 0.0 for i, move in enumerate(moves)}

    # ##>: Work in log space so small temperatures do not overflow.
    with np.errstate(divide='ignore', over='ignore'):
        logits = np.log(counts) / temperature
    if np.isinf(logits.max()):
        # ##>: The temperature is too small to be told apart from 0.
        best = int(np.argmax(counts))
        return {move: 1.0 if i == best else 0.0 for i, move in enumerate(moves)}
    logits -= logits.max()
    weights = np.exp(logits)
    probs = weights / weights.sum()
    return {move: float(prob) for move, prob in zip(moves, probs, strict=True)}


def select_move(visit_counts: Mapping[Move, float], temperature: float, generator: Generator) -> Move:
    """
    Select the move to play from root visit counts.

    Parameters
    ----------
    visit_counts : Mapping[Move, float]
        Visit count of each root move, in canonical order.
    temperature : float
        0 picks the most visited move, otherwise the move is sampled from
        ``visit_distribution(visit_counts, temperature)``.
    generator : Generator
        Random generator used for sampling.

    Returns
    -------
    Move
        The selected move.
    """
    policy = visit_distribution(visit_counts, temperature)
    moves = list(policy)

    if temperature == 0.0:
        return max(moves, key=lambda move: policy[move])

    # ##>: Sample an index: moves may be tuples, which numpy would turn into arrays.
    index = generator.choice(len(moves), p=[policy[move] for move in moves])
    return moves[int(index)]


def add_exploration_noise(node: Node, alpha: float, fraction: float, generator: Generator) -> None:
    """
    Mix Dirichlet noise into the priors of an expanded node.

    The noise is mixed into the predictor priors kept in ``raw_priors``, so calling this again
    replaces the previous noise instead of stacking on it.

    Parameters
    ----------
    node : Node
        An expanded node, usually the root.
    alpha : float
        Dirichlet concentration.
    fraction : float
        Weight of the noise.
    generator : Generator
        Random generator.
    """
    moves = list(node.raw_priors)
    noise = generator.dirichlet([alpha] * len(moves))
    node.priors = {
        move: node.raw_priors[move] * (1 - fraction) + float(_noise) * fraction
        for move, _noise in zip(moves, noise, strict=True)
    }
