"""
Tests for the evaluation command line.
"""

from unittest import TestCase, main

from gamesearch.evaluate import build_actor, build_players, evaluate
from gamesearch.evaluate import main as evaluate_main
from gamesearch.mcts import MCTSActor, MCTSConfig, RandomActor


class TestEvaluate(TestCase):
    """Test match evaluation."""

    def test_build_actor(self):
        """Player kinds map to actors."""
        config = MCTSConfig(simulation_count=5)

        self.assertIsInstance(build_actor('mcts', config, 'uniform'), MCTSActor)
        self.assertIsInstance(build_actor('mcts', config, 'rollout', seed=1), MCTSActor)
        self.assertIsInstance(build_actor('random', config, 'uniform'), RandomActor)
        with self.assertRaises(ValueError):
            build_actor('human', config, 'uniform')

    def test_players_get_distinct_seeds(self):
        """A seeded MCTS opponent does not replay the player's random sequence."""
        player, opponent = build_players(MCTSConfig(simulation_count=5, seed=3), 'uniform', 'mcts')

        self.assertEqual(player.search.config.seed, 3)
        self.assertEqual(opponent.search.config.seed, 4)
        self.assertNotEqual(player.search.generator.random(), opponent.search.generator.random())

    def test_unseeded_players(self):
        """Without a seed both players draw fresh entropy."""
        player, opponent = build_players(MCTSConfig(simulation_count=5), 'rollout', 'random')

        self.assertIsNone(player.search.config.seed)
        self.assertIsInstance(opponent, RandomActor)

    def test_evaluate_counts_every_game(self):
        """Wins, draws and losses add up to the match length."""
        result = evaluate(RandomActor(seed=0), RandomActor(seed=1), length=6)

        self.assertEqual(set(result), {'win', 'draw', 'loss'})
        self.assertEqual(sum(result.values()), 6)

    def test_main(self):
        """The command line plays the requested games."""
        result = evaluate_main(['--games', '2', '--simulations', '10', '--predictor', 'uniform', '--seed', '0'])

        self.assertEqual(sum(result.values()), 2)

    def test_main_with_workers(self):
        """Threaded search runs from the command line."""
        result = evaluate_main(['--games', '1', '--simulations', '20', '--workers', '2', '--predictor', 'rollout'])

        self.assertEqual(sum(result.values()), 1)


if __name__ == '__main__':
    main()
