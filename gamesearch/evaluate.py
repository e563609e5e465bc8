"""
Evaluate the search by playing tic-tac-toe matches.
"""

from __future__ import annotations

import logging
from argparse import ArgumentParser
from collections import Counter
from dataclasses import replace

from tqdm import trange

from gamesearch.games import TicTacToe
from gamesearch.mcts import MCTSActor, MCTSConfig, RandomActor, RolloutPredictor, UniformPredictor
from gamesearch.mcts.actor import Actor
from gamesearch.selfplay import play_game

PREDICTORS = {
    'uniform': UniformPredictor,
    'rollout': RolloutPredictor,
}


def build_actor(kind: str, config: MCTSConfig, predictor: str, seed: int | None = None) -> Actor:
    """
    Create a player.

    Parameters
    ----------
    kind : str
        ``mcts`` or ``random``.
    config : MCTSConfig
        Search configuration of MCTS players.
    predictor : str
        Name of the predictor guiding MCTS players.
    seed : int | None
        Seed of the player's random generator.

    Returns
    -------
    Actor
        The player.
    """
    if kind == 'random':
        return RandomActor(seed=seed)
    if kind != 'mcts':
        raise ValueError(f'Unknown player `{kind}`.')
    if predictor == 'rollout':
        return MCTSActor(RolloutPredictor(playouts=4, seed=seed), config)
    return MCTSActor(PREDICTORS[predictor](), config)


def build_players(config: MCTSConfig, predictor: str, opponent: str) -> tuple[Actor, Actor]:
    """
    Create the evaluated MCTS player and its opponent.

    The opponent gets the next seed, so two seeded MCTS players never share a random sequence.

    Parameters
    ----------
    config : MCTSConfig
        Search configuration of the evaluated player.
    predictor : str
        Name of the predictor guiding MCTS players.
    opponent : str
        Kind of the opponent, ``mcts`` or ``random``.

    Returns
    -------
    tuple[Actor, Actor]
        The evaluated player and its opponent.
    """
    opponent_seed = None if config.seed is None else config.seed + 1
    player = build_actor('mcts', config, predictor, seed=config.seed)
    return player, build_actor(opponent, replace(config, seed=opponent_seed), predictor, seed=opponent_seed)


def evaluate(player: Actor, opponent: Actor, length: int = 10) -> dict[str, int]:
    """
    Play a match, alternating who moves first.

    Parameters
    ----------
    player : Actor
        The evaluated player.
    opponent : Actor
        Its opponent.
    length : int
        Number of games.

    Returns
    -------
    dict[str, int]
        Number of wins, draws and losses of the evaluated player.
    """
    score = Counter({'win': 0, 'draw': 0, 'loss': 0})

    with trange(length) as period:
        for num in period:
            # ##>: Swap seats every game.
            first = num % 2 == 0
            seats = (player, opponent) if first else (opponent, player)
            record = play_game(seats, TicTacToe())

            outcome = record.outcome if first else -record.outcome
            if outcome > 0:
                score['win'] += 1
            elif outcome < 0:
                score['loss'] += 1
            else:
                score['draw'] += 1

            period.set_description(f'Evaluation: {num + 1}')
            period.set_postfix(**score)

    return dict(score)


def main(argv: list[str] | None = None) -> dict[str, int]:
    """Command line entry point."""
    parser = ArgumentParser(description='Play tic-tac-toe matches with Monte Carlo Tree Search.')
    parser.add_argument('--games', type=int, default=10, help='Number of games to play')
    parser.add_argument('--simulations', type=int, default=100, help='Simulations per move')
    parser.add_argument('--c-puct', type=float, default=1.25, help='PUCT exploration constant')
    parser.add_argument('--temperature', type=float, default=0.0, help='Move selection temperature')
    parser.add_argument('--predictor', choices=sorted(PREDICTORS), default='rollout', help='Leaf evaluator')
    parser.add_argument('--opponent', choices=['random', 'mcts'], default='random', help='Opponent player')
    parser.add_argument('--workers', type=int, default=1, help='Search threads per move')
    parser.add_argument('--seed', type=int, default=None, help='Random seed')
    parser.add_argument('--log-level', default='WARNING', help='Logging level')
    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log_level.upper(), format='%(asctime)s %(name)s %(levelname)s %(message)s')

    config = MCTSConfig(
        simulation_count=args.simulations,
        exploration_constant=args.c_puct,
        temperature=args.temperature,
        num_workers=args.workers,
        seed=args.seed,
    )
    player, opponent = build_players(config, args.predictor, args.opponent)

    result = evaluate(player, opponent, length=args.games)
    print(f'Evaluation over {args.games} games: {result}')
    return result


if __name__ == '__main__':
    main()
