"""
Monte Carlo Tree Search driver.

Each decision runs a fixed budget of simulations from the root state. A simulation walks down
the tree with the PUCT rule, expands the leaf it reaches with one predictor call (or reads the
game result on a terminal leaf), and backpropagates the value along the walked path, flipping
its sign at every ply for alternating games. Values are always expressed from the perspective
of the player to move at the node holding them.

Two execution modes share the same simulation code:
- Sequential: one simulation at a time, the reference behavior.
- Threaded: several workers with virtual loss, per-node locks guarding expansion and updates.

Reference: "Mastering the game of Go without human knowledge" (Nature 2017)
"""

from __future__ import annotations

import logging
import threading
from enum import Enum, auto

from numpy.random import PCG64DXSM, default_rng

from .config import MCTSConfig
from .errors import BoardStateFailure, PredictorFailure, TerminalStateError
from .node import Node, SearchTree, ordered_moves
from .policy import add_exploration_noise, root_visit_counts, select_child, select_move
from .predictor import validate_prediction
from .types import BoardState, Move, Prediction, Predictor, SearchResult

# ##>: Module logger.
_logger = logging.getLogger(__name__)

# ##>: Collaborator failures that only cost the current simulation.
RECOVERABLE_ERRORS = (PredictorFailure, BoardStateFailure)


class Phase(Enum):
    """Phase of the simulation loop."""

    IDLE = auto()
    SELECTING = auto()
    EXPANDING = auto()
    EVALUATING = auto()
    BACKPROPAGATING = auto()
    DONE = auto()


class MonteCarloTreeSearch:
    """
    Search driver guided by a policy/value predictor.

    Attributes
    ----------
    predictor : Predictor
        Evaluates the leaves of the tree.
    config : MCTSConfig
        Search configuration.
    tree : SearchTree | None
        Tree of the latest search, kept for inspection and reuse.
    phase : Phase
        Latest phase entered by the simulation loop.

    Examples
    --------
    >>> search = MonteCarloTreeSearch(UniformPredictor(), MCTSConfig(simulation_count=100))
    >>> result = search.search(TicTacToe())
    >>> sum(result.visit_counts.values())
    100
    """

    def __init__(self, predictor: Predictor, config: MCTSConfig | None = None):
        self.predictor = predictor
        self.config = config if config is not None else MCTSConfig()
        self.generator = default_rng(PCG64DXSM(self.config.seed))
        self.tree: SearchTree | None = None
        self.phase = Phase.IDLE
        self._cancel = threading.Event()
        self._counter_lock = threading.Lock()

    def cancel(self) -> None:
        """Ask the running search to stop before its next simulation."""
        self._cancel.set()

    def reset(self) -> None:
        """Forget the current tree."""
        self.tree = None
        self.phase = Phase.IDLE

    def advance(self, move: Move) -> None:
        """
        Commit a move played from the current root.

        With ``reuse_tree`` the subtree under the move becomes the next tree, otherwise the tree
        is discarded.

        Parameters
        ----------
        move : Move
            The move played.
        """
        if self.config.reuse_tree and self.tree is not None:
            self.tree = self.tree.subtree(move)
        else:
            self.tree = None

    def search(self, root_state: BoardState, temperature: float | None = None) -> SearchResult:
        """
        Run the simulation budget from a state and select a move.

        Parameters
        ----------
        root_state : BoardState
            Current position. With ``reuse_tree``, the kept tree is used when its root state
            compares equal to this one.
        temperature : float | None
            Overrides the configured move selection temperature.

        Returns
        -------
        SearchResult
            The selected move and the root visit counts.

        Raises
        ------
        TerminalStateError
            If the root is terminal or has no legal move.
        PredictorFailure
            If the predictor fails on the root or during the first simulation.
        BoardStateFailure
            If the board fails on the root or during the first simulation.
        """
        temperature = self.config.temperature if temperature is None else temperature
        if temperature < 0:
            raise ValueError(f'temperature must be non-negative, got {temperature}.')

        try:
            tree = self._prepare(root_state)
            if self.config.num_workers == 1:
                completed, failures = self._run_sequential(tree)
            else:
                completed, failures = self._run_threaded(tree)
        finally:
            self._cancel.clear()

        self.phase = Phase.DONE

        # ##>: Fall back to the priors when no simulation reached a root child.
        visit_counts = root_visit_counts(tree)
        weights = visit_counts if any(visit_counts.values()) else tree.root.priors
        move = select_move(weights, temperature, self.generator)

        _logger.debug(
            'Search finished: %d simulations, %d discarded, %d nodes, selected %r.',
            completed,
            failures,
            len(tree),
            move,
        )
        return SearchResult(
            move=move,
            visit_counts=visit_counts,
            value=tree.root.mean_value(),
            simulations=completed,
            failures=failures,
        )

    def _prepare(self, root_state: BoardState) -> SearchTree:
        """Create or reuse the tree and expand its root."""
        if self.config.reuse_tree and self.tree is not None and self.tree.root.state == root_state:
            tree = self.tree
            _logger.debug('Reusing search tree with %d nodes.', len(tree))
        else:
            tree = SearchTree.from_state(root_state)
        self.tree = tree

        root = tree.root
        if self._is_terminal(root):
            raise TerminalStateError('Cannot search from a terminal state.')

        if not root.expanded:
            self.phase = Phase.EXPANDING
            moves = self._legal_moves(root)
            if not moves:
                raise TerminalStateError('Root state has no legal move.')
            prediction = self._predict(root.state, moves)
            root.expand(prediction.probabilities, moves)
            root.estimate = prediction.value
            root.update(prediction.value)

        # ##>: Add exploration noise to the root node.
        if self.config.dirichlet_fraction > 0:
            add_exploration_noise(root, self.config.dirichlet_alpha, self.config.dirichlet_fraction, self.generator)

        return tree

    def _run_sequential(self, tree: SearchTree) -> tuple[int, int]:
        """
        Run simulations one after another.

        Returns
        -------
        tuple[int, int]
            Completed and discarded simulation counts.
        """
        completed = failures = 0
        for simulation in range(self.config.simulation_count):
            if self._cancel.is_set():
                _logger.debug('Search cancelled after %d simulations.', completed)
                break

            path: list[int] = []
            try:
                value = self._simulate(tree, path, virtual=False)
            except RECOVERABLE_ERRORS as error:
                # ##>: Nothing was backpropagated yet, so the tree is untouched.
                if simulation == 0:
                    raise
                failures += 1
                _logger.warning('Discarding simulation %d: %s', simulation + 1, error)
                continue

            self.phase = Phase.BACKPROPAGATING
            self._backpropagate(tree, path, value)
            completed += 1

        return completed, failures

    def _run_threaded(self, tree: SearchTree) -> tuple[int, int]:
        """
        Run simulations on worker threads sharing a simulation counter.

        Returns
        -------
        tuple[int, int]
            Completed and discarded simulation counts.
        """
        counter = {'started': 0, 'completed': 0, 'failures': 0}
        errors: list[Exception] = []

        threads = [
            threading.Thread(target=self._worker, args=(tree, counter, errors))
            for _ in range(self.config.num_workers)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        if errors:
            raise errors[0]
        return counter['completed'], counter['failures']

    def _worker(self, tree: SearchTree, counter: dict[str, int], errors: list[Exception]) -> None:
        """Worker loop of the threaded search."""
        while True:
            with self._counter_lock:
                if errors or self._cancel.is_set() or counter['started'] >= self.config.simulation_count:
                    return
                simulation = counter['started']
                counter['started'] += 1

            path: list[int] = []
            try:
                value = self._simulate(tree, path, virtual=True)
            except RECOVERABLE_ERRORS as error:
                with self._counter_lock:
                    if simulation == 0:
                        errors.append(error)
                    else:
                        counter['failures'] += 1
                        _logger.warning('Discarding simulation %d: %s', simulation + 1, error)
                continue
            except Exception as error:
                # ##>: Hand unexpected errors to the main thread, which re-raises them.
                with self._counter_lock:
                    errors.append(error)
                return
            finally:
                for index in path:
                    tree[index].remove_virtual_loss()

            self._backpropagate(tree, path, value)
            with self._counter_lock:
                counter['completed'] += 1

    def _simulate(self, tree: SearchTree, path: list[int], virtual: bool) -> float:
        """
        Select a leaf, then expand and evaluate it.

        Parameters
        ----------
        tree : SearchTree
            The search tree.
        path : list[int]
            Filled with the indices walked from the root to the leaf.
        virtual : bool
            Mark the walked nodes with a virtual loss.

        Returns
        -------
        float
            Value of the leaf, from the perspective of the player to move there.
        """
        self.phase = Phase.SELECTING
        leaf = self._select(tree, path, virtual)

        if self._is_terminal(leaf):
            self.phase = Phase.EVALUATING
            return self._outcome(leaf)

        self.phase = Phase.EXPANDING
        value = self._expand(leaf)
        self.phase = Phase.EVALUATING
        return value

    def _select(self, tree: SearchTree, path: list[int], virtual: bool) -> Node:
        """Walk down from the root until an unexpanded or terminal node."""
        index = SearchTree.ROOT
        while True:
            node = tree[index]
            path.append(index)
            if virtual:
                node.add_virtual_loss()
            if not node.expanded or self._is_terminal(node):
                return node
            move = select_child(tree, index, self.config)
            index = tree.child(index, move)

    def _expand(self, node: Node) -> float:
        """Expand a leaf with one predictor call and return its value estimate."""
        with node.lock:
            if node.expanded:
                # ##>: Another worker expanded it while this one waited.
                return node.estimate

            moves = self._legal_moves(node)
            if not moves:
                raise BoardStateFailure('Non-terminal state has no legal move.')
            prediction = self._predict(node.state, moves)
            node.expand(prediction.probabilities, moves)
            node.estimate = prediction.value
        return prediction.value

    def _backpropagate(self, tree: SearchTree, path: list[int], value: float) -> None:
        """Update every node of the path, from the leaf up to the root."""
        for index in reversed(path):
            tree[index].update(value)
            if self.config.alternating:
                value = -value

    def _predict(self, state: BoardState, moves: list[Move]) -> Prediction:
        """Call the predictor and validate its output."""
        try:
            output = self.predictor.evaluate(state)
        except Exception as error:
            raise PredictorFailure(f'Predictor raised {type(error).__name__}: {error}') from error
        return validate_prediction(output, moves)

    @staticmethod
    def _is_terminal(node: Node) -> bool:
        if node.terminal is None:
            try:
                node.terminal = bool(node.state.is_terminal())
            except Exception as error:
                raise BoardStateFailure(f'Terminal check failed: {error}') from error
        return node.terminal

    @staticmethod
    def _legal_moves(node: Node) -> list[Move]:
        try:
            return ordered_moves(node.state.legal_moves())
        except Exception as error:
            raise BoardStateFailure(f'Move generation failed: {error}') from error

    @staticmethod
    def _outcome(node: Node) -> float:
        try:
            return float(node.state.outcome())
        except Exception as error:
            raise BoardStateFailure(f'Outcome of a terminal state failed: {error}') from error
