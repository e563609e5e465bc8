"""
Tests for MCTS selection rules.

This module tests:
- PUCT score behavior and child selection tie-breaks
- Final move selection with temperature
- Root exploration noise
"""

from math import isclose

import numpy as np
import pytest

from gamesearch.games import TicTacToe
from gamesearch.mcts.config import MCTSConfig
from gamesearch.mcts.node import Node, SearchTree
from gamesearch.mcts.policy import (
    add_exploration_noise,
    child_value,
    puct_score,
    root_visit_counts,
    select_child,
    select_move,
    visit_distribution,
)


@pytest.fixture
def config():
    """Default search configuration."""
    return MCTSConfig(exploration_constant=1.5)


@pytest.fixture
def tree():
    """Tree with an expanded tic-tac-toe root and uniform priors."""
    tree = SearchTree.from_state(TicTacToe())
    moves = tree.root.state.legal_moves()
    tree.root.expand({move: 1.0 for move in moves}, moves)
    tree.root.update(0.0)
    return tree


@pytest.fixture
def generator():
    """Seeded random generator."""
    return np.random.default_rng(42)


class TestPUCTScore:
    """Tests for the PUCT formula."""

    def test_score_decays_with_child_visits(self, config):
        """Score is non-increasing in the child's own visit count."""
        parent = Node(visit_count=50)
        scores = [puct_score(parent, 0.4, Node(visit_count=visits), config) for visits in range(30)]

        assert all(later <= earlier for earlier, later in zip(scores, scores[1:]))
        assert scores[-1] < scores[0]

    def test_score_decays_with_fixed_mean_value(self):
        """With a fixed mean value, more visits still lower the score."""
        config = MCTSConfig(alternating=False)
        parent = Node(visit_count=100)
        scores = [
            puct_score(parent, 0.2, Node(visit_count=visits, value_sum=0.3 * visits), config)
            for visits in range(1, 40)
        ]

        assert all(later <= earlier for earlier, later in zip(scores, scores[1:]))

    def test_missing_child_scores_like_unvisited(self, config):
        """A child never created scores like one with zero visits."""
        parent = Node(visit_count=9)

        assert puct_score(parent, 0.3, None, config) == puct_score(parent, 0.3, Node(), config)

    def test_formula(self, config):
        """Score matches Q + c * P * sqrt(N) / (1 + n)."""
        parent = Node(visit_count=16)
        child = Node(visit_count=3, value_sum=-1.5)

        # ##>: Child mean is -0.5 for its own player, so +0.5 for the parent.
        expected = 0.5 + 1.5 * 0.25 * 4.0 / 4
        assert isclose(puct_score(parent, 0.25, child, config), expected)

    def test_child_value_perspective(self):
        """Alternating games negate the child's mean value."""
        child = Node(visit_count=2, value_sum=1.0)

        assert child_value(child, MCTSConfig(alternating=True)) == -0.5
        assert child_value(child, MCTSConfig(alternating=False)) == 0.5
        assert child_value(None, MCTSConfig(unvisited_value=-0.2)) == -0.2

    def test_virtual_loss_counts_as_lost_visit(self):
        """Each virtual loss adds a -1 visit for the player choosing the child."""
        child = Node(visit_count=1, value_sum=-1.0, virtual_loss=3)

        # ##>: (1 - 3) / 4 seen from the parent.
        assert child_value(child, MCTSConfig()) == -0.5
        assert child_value(Node(virtual_loss=2), MCTSConfig()) == -1.0

    def test_virtual_loss_lowers_losing_child(self, config):
        """A child already losing for the parent scores lower while a simulation is in flight."""
        parent = Node(visit_count=4)
        child = Node(visit_count=2, value_sum=1.0)
        before = puct_score(parent, 0.1, child, config)

        parent.add_virtual_loss()
        child.add_virtual_loss()
        after = puct_score(parent, 0.1, child, config)

        assert after < before


class TestSelectChild:
    """Tests for child selection."""

    def test_tie_goes_to_first_canonical_move(self, tree, config):
        """Equal scores select the first legal move."""
        assert select_child(tree, SearchTree.ROOT, config) == 0

    def test_selects_higher_prior(self, tree, config):
        """Higher prior wins when values are equal."""
        tree.root.priors = {move: 0.05 for move in tree.root.priors}
        tree.root.priors[6] = 0.6

        assert select_child(tree, SearchTree.ROOT, config) == 6

    def test_selects_good_move_for_parent(self, tree):
        """A child losing for its own player is good for the parent."""
        config = MCTSConfig(exploration_constant=0.0)
        tree.root.visit_count = 10
        for move, value_sum in ((0, 2.0), (3, -2.0)):
            index = tree.child(SearchTree.ROOT, move)
            tree[index].visit_count = 4
            tree[index].value_sum = value_sum

        assert select_child(tree, SearchTree.ROOT, config) == 3

    def test_virtual_loss_steers_away_from_busy_child(self, tree):
        """Two equally losing children: the one with a simulation in flight is avoided."""
        config = MCTSConfig(exploration_constant=0.0)
        tree.root.priors = {0: 0.5, 3: 0.5}
        tree.root.visit_count = 5
        for move in (0, 3):
            index = tree.child(SearchTree.ROOT, move)
            tree[index].visit_count = 2
            tree[index].value_sum = 1.0

        assert select_child(tree, SearchTree.ROOT, config) == 0

        tree[tree.root.children[0]].add_virtual_loss()

        assert select_child(tree, SearchTree.ROOT, config) == 3

    def test_unexpanded_node_raises(self, config):
        """Selection needs an expanded node."""
        tree = SearchTree.from_state(TicTacToe())

        with pytest.raises(ValueError):
            select_child(tree, SearchTree.ROOT, config)

    def test_root_visit_counts_cover_every_legal_move(self, tree):
        """Unexplored moves appear with zero visits."""
        index = tree.child(SearchTree.ROOT, 2)
        tree[index].update(1.0)

        counts = root_visit_counts(tree)

        assert list(counts) == list(range(9))
        assert counts[2] == 1
        assert sum(counts.values()) == 1


class TestMoveSelection:
    """Tests for final move selection."""

    def test_zero_temperature_picks_most_visited(self, generator):
        """Temperature 0 picks the max visit count."""
        assert select_move({'a': 3, 'b': 9, 'c': 5}, 0.0, generator) == 'b'

    def test_zero_temperature_tie_break(self, generator):
        """Ties go to the first move in canonical order, every time."""
        counts = {4: 2, 1: 7, 8: 7, 0: 7}
        for _ in range(20):
            assert select_move(counts, 0.0, generator) == 1

    def test_distribution_proportional_at_unit_temperature(self):
        """Temperature 1 is proportional to visit counts."""
        policy = visit_distribution({0: 1, 1: 3, 2: 0}, temperature=1.0)

        assert policy[0] == pytest.approx(0.25)
        assert policy[1] == pytest.approx(0.75)
        assert policy[2] == 0.0

    def test_distribution_uses_power_of_inverse_temperature(self):
        """Probabilities follow count ** (1 / temperature)."""
        policy = visit_distribution({0: 2, 1: 4}, temperature=0.5)

        # ##>: 4 and 16 once squared.
        assert policy[0] == pytest.approx(0.2)
        assert policy[1] == pytest.approx(0.8)

    def test_high_temperature_approaches_uniform(self):
        """Very large temperatures flatten the distribution."""
        policy = visit_distribution({0: 1, 1: 50, 2: 400}, temperature=1e6)

        for prob in policy.values():
            assert prob == pytest.approx(1.0 / 3, abs=1e-3)

    def test_tiny_temperature_does_not_overflow(self):
        """Near-zero temperatures stay finite and favor the max."""
        policy = visit_distribution({0: 10, 1: 11}, temperature=1e-4)

        assert policy[1] == pytest.approx(1.0)

    def test_subnormal_temperature_is_greedy(self, generator):
        """Temperatures whose inverse overflows behave like temperature 0."""
        policy = visit_distribution({0: 3, 1: 5}, temperature=1e-310)

        assert policy == {0: 0.0, 1: 1.0}
        assert select_move({0: 3, 1: 5}, 1e-310, generator) == 1

    def test_zero_visits_give_uniform(self):
        """Without visits every move is equally likely."""
        assert visit_distribution({0: 0, 1: 0}) == {0: 0.5, 1: 0.5}

    def test_sampling_follows_visits(self, generator):
        """Sampling at temperature 1 only returns visited moves, mostly the popular one."""
        counts = {0: 0, 1: 90, 2: 10}
        samples = [select_move(counts, 1.0, generator) for _ in range(500)]

        assert 0 not in samples
        assert samples.count(1) > samples.count(2)

    def test_sampling_supports_tuple_moves(self, generator):
        """Tuple moves come back as tuples."""
        move = select_move({(0, 1): 1, (2, 2): 1}, 1.0, generator)

        assert move in ((0, 1), (2, 2))

    def test_empty_counts_raise(self):
        """A distribution needs at least one move."""
        with pytest.raises(ValueError):
            visit_distribution({})


class TestExplorationNoise:
    """Tests for root Dirichlet noise."""

    def test_noise_keeps_a_distribution(self, tree, generator):
        """Noisy priors still sum to one and change."""
        before = dict(tree.root.priors)
        add_exploration_noise(tree.root, alpha=0.3, fraction=0.25, generator=generator)

        assert sum(tree.root.priors.values()) == pytest.approx(1.0)
        assert tree.root.priors != before
        assert min(tree.root.priors.values()) >= 0.75 / 9 - 1e-12

    def test_noise_does_not_stack(self, tree, generator):
        """Repeated noise is always mixed into the predictor priors."""
        for _ in range(3):
            add_exploration_noise(tree.root, alpha=0.3, fraction=0.25, generator=generator)

        assert tree.root.raw_priors == pytest.approx({move: 1.0 / 9 for move in range(9)})
        assert min(tree.root.priors.values()) >= 0.75 / 9 - 1e-12
        assert sum(tree.root.priors.values()) == pytest.approx(1.0)

    def test_zero_fraction_is_identity(self, tree, generator):
        """A zero weight leaves the priors untouched."""
        before = dict(tree.root.priors)
        add_exploration_noise(tree.root, alpha=0.3, fraction=0.0, generator=generator)

        assert tree.root.priors == pytest.approx(before)
