"""
Search tree storage.

Nodes live in an arena and refer to their children by integer index. A node never knows its
parent: the search records the path it walked and backpropagates along it. Every node carries
its own lock, so concurrent workers can expand and update distinct nodes independently.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from math import isclose

from .errors import BoardStateFailure, DoubleExpansionError
from .types import BoardState, Move

# ##>: Module logger.
_logger = logging.getLogger(__name__)

PRIOR_TOLERANCE = 1e-6


def ordered_moves(moves: Iterable[Move]) -> list[Move]:
    """
    Put legal moves in canonical order.

    Sequences keep the order given by the board. Sets have no order, so they are sorted.

    Parameters
    ----------
    moves : Iterable[Move]
        Legal moves reported by a board state.

    Returns
    -------
    list[Move]
        Moves in canonical order.
    """
    if isinstance(moves, (set, frozenset)):
        return sorted(moves)
    return list(moves)


@dataclass(kw_only=True)
class Node:
    """
    A visited position of the search tree.

    Attributes
    ----------
    prior : float
        Probability given by the predictor to the move leading to this node.
    state : BoardState | None
        Position at this node.
    terminal : bool | None
        Cached terminal flag, None until asked.
    visit_count : int
        Number of simulations that went through this node.
    value_sum : float
        Sum of backpropagated values, from the perspective of the player to move here.
    virtual_loss : int
        Number of in-flight simulations currently going through this node.
    estimate : float | None
        Value given by the predictor when the node was expanded.
    priors : dict[Move, float]
        Move probabilities used for selection, in canonical order. Root noise is mixed in here.
    raw_priors : dict[Move, float]
        Renormalized predictor probabilities over legal moves, never touched by noise.
    children : dict[Move, int]
        Arena index of each child created so far.
    expanded : bool
        Whether the priors were set from a predictor call.
    """

    prior: float = 1.0
    state: BoardState | None = None
    terminal: bool | None = None
    visit_count: int = 0
    value_sum: float = 0.0
    virtual_loss: int = 0
    estimate: float | None = None
    priors: dict[Move, float] = field(default_factory=dict)
    raw_priors: dict[Move, float] = field(default_factory=dict)
    children: dict[Move, int] = field(default_factory=dict)
    expanded: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def mean_value(self, default: float = 0.0) -> float:
        """
        Average backpropagated value.

        Parameters
        ----------
        default : float
            Value returned for an unvisited node.

        Returns
        -------
        float
            ``value_sum / visit_count``, or ``default`` when unvisited.
        """
        if self.visit_count == 0:
            return default
        return self.value_sum / self.visit_count

    def expand(self, probabilities: Mapping[Move, float], legal_moves: Iterable[Move]) -> None:
        """
        Record the move priors of this node.

        Probabilities of illegal moves are ignored and the remaining mass is renormalized over the
        legal moves. Callers expanding concurrently must hold ``lock``.

        Parameters
        ----------
        probabilities : Mapping[Move, float]
            Move probabilities from the predictor. Missing legal moves count as 0.
        legal_moves : Iterable[Move]
            Legal moves of the node's state.

        Raises
        ------
        DoubleExpansionError
            If the node is already expanded.
        ValueError
            If there is no legal move.
        """
        if self.expanded:
            raise DoubleExpansionError('Node is already expanded.')

        moves = ordered_moves(legal_moves)
        if not moves:
            raise ValueError('Cannot expand a node without legal moves.')

        # ##>: Keep only legal moves and renormalize.
        masked = {move: float(probabilities.get(move, 0.0)) for move in moves}
        norm = sum(masked.values())
        if norm > 0:
            priors = {move: prob / norm for move, prob in masked.items()}
        else:
            _logger.warning('No probability mass on %d legal moves, falling back to uniform priors.', len(moves))
            priors = {move: 1.0 / len(moves) for move in moves}

        assert isclose(sum(priors.values()), 1.0, abs_tol=PRIOR_TOLERANCE), 'Priors must sum to one.'
        self.raw_priors = priors
        self.priors = dict(priors)
        self.expanded = True

    def update(self, value: float) -> None:
        """
        Record one simulation through this node.

        Parameters
        ----------
        value : float
            Value of the simulation, from the perspective of the player to move here.
        """
        with self.lock:
            self.visit_count += 1
            self.value_sum += value

    def add_virtual_loss(self) -> None:
        """Mark an in-flight simulation through this node."""
        with self.lock:
            self.virtual_loss += 1

    def remove_virtual_loss(self) -> None:
        """Clear an in-flight simulation mark."""
        with self.lock:
            self.virtual_loss -= 1


class SearchTree:
    """
    Arena of search nodes addressed by stable integer indices.

    The root is always at index ``ROOT``.

    Examples
    --------
    >>> tree = SearchTree.from_state(state)
    >>> index = tree.child(SearchTree.ROOT, move)
    >>> tree[index].visit_count
    0
    """

    ROOT = 0

    def __init__(self, root: Node):
        self.nodes: list[Node] = [root]
        self._lock = threading.Lock()

    @classmethod
    def from_state(cls, state: BoardState) -> SearchTree:
        """Create a tree holding a single root node."""
        return cls(Node(state=state))

    @property
    def root(self) -> Node:
        """The root node."""
        return self.nodes[self.ROOT]

    def __len__(self) -> int:
        return len(self.nodes)

    def __getitem__(self, index: int) -> Node:
        return self.nodes[index]

    def add(self, node: Node) -> int:
        """Store a node and return its index."""
        with self._lock:
            self.nodes.append(node)
            return len(self.nodes) - 1

    def child(self, index: int, move: Move) -> int:
        """
        Index of the child reached by ``move``, creating it on first use.

        Parameters
        ----------
        index : int
            Index of an expanded parent node.
        move : Move
            A legal move of the parent.

        Returns
        -------
        int
            Index of the child node.

        Raises
        ------
        BoardStateFailure
            If the board fails to apply the move.
        """
        parent = self.nodes[index]
        with parent.lock:
            child_index = parent.children.get(move)
            if child_index is None:
                try:
                    state = parent.state.apply_move(move)
                except Exception as error:
                    raise BoardStateFailure(f'Applying move {move!r} failed: {error}') from error
                child_index = self.add(Node(prior=parent.priors[move], state=state))
                parent.children[move] = child_index
        return child_index

    def subtree(self, move: Move) -> SearchTree | None:
        """
        Extract the subtree under a root move into a new, compact arena.

        Parameters
        ----------
        move : Move
            A move played from the root.

        Returns
        -------
        SearchTree | None
            The subtree rooted at the child, or None if that child was never created.
        """
        start = self.root.children.get(move)
        if start is None:
            return None

        # ##>: Breadth-first copy, remapping child indices to the new arena.
        remap = {start: self.ROOT}
        order = [start]
        for old_index in order:
            for child_index in self.nodes[old_index].children.values():
                remap[child_index] = len(order)
                order.append(child_index)

        nodes = []
        for old_index in order:
            old = self.nodes[old_index]
            nodes.append(
                Node(
                    prior=old.prior,
                    state=old.state,
                    terminal=old.terminal,
                    visit_count=old.visit_count,
                    value_sum=old.value_sum,
                    estimate=old.estimate,
                    priors=dict(old.priors),
                    raw_priors=dict(old.raw_priors),
                    children={child_move: remap[child] for child_move, child in old.children.items()},
                    expanded=old.expanded,
                )
            )

        tree = SearchTree(nodes[0])
        tree.nodes.extend(nodes[1:])
        return tree
