"""
Self-play data generation.

Plays complete two-player games with actors and turns them into training examples: the
searched move distribution of every position, labelled with the final result seen by the
player to move there.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import NamedTuple

from tqdm import tqdm

from gamesearch.mcts.actor import Actor
from gamesearch.mcts.types import BoardState, Move, SearchStats

# ##>: Module logger.
_logger = logging.getLogger(__name__)


class TrainingExample(NamedTuple):
    """
    Data for a single position.
    """

    state: BoardState
    policy: dict[Move, float]
    value: float


@dataclass
class GameRecord:
    """
    A complete game.

    Attributes
    ----------
    states : list[BoardState]
        Position before each move.
    moves : list[Move]
        Moves played.
    stats : list[SearchStats]
        Statistics of the actor that chose each move.
    outcome : float
        Final result from the first player's perspective, 0 for a draw or an unfinished game.
    finished : bool
        Whether the game reached a terminal state.
    """

    states: list[BoardState] = field(default_factory=list)
    moves: list[Move] = field(default_factory=list)
    stats: list[SearchStats] = field(default_factory=list)
    outcome: float = 0.0
    finished: bool = False

    def __len__(self) -> int:
        return len(self.moves)


def play_game(players: Sequence[Actor], initial_state: BoardState, max_moves: int | None = None) -> GameRecord:
    """
    Play one game between actors taking turns.

    Parameters
    ----------
    players : Sequence[Actor]
        Actors in turn order. A single actor plays every move.
    initial_state : BoardState
        Starting position, the first player to move.
    max_moves : int | None
        Stop the game after this many moves.

    Returns
    -------
    GameRecord
        The played game.
    """
    if not players:
        raise ValueError('At least one player is needed.')

    # ##>: The same actor may play several seats; notify it once per move.
    unique_players = list({id(player): player for player in players}.values())
    for player in unique_players:
        player.reset()

    record = GameRecord()
    state = initial_state
    while not state.is_terminal():
        if max_moves is not None and len(record) >= max_moves:
            _logger.debug('Game stopped after %d moves.', len(record))
            break

        actor = players[len(record) % len(players)]
        move = actor.select_move(state)

        record.states.append(state)
        record.moves.append(move)
        record.stats.append(actor.stats())

        for player in unique_players:
            player.observe(move)
        state = state.apply_move(move)

    if state.is_terminal():
        # ##>: The outcome is given for the player to move at the end; bring it back to the first player.
        sign = 1.0 if len(record) % 2 == 0 else -1.0
        record.outcome = sign * float(state.outcome())
        record.finished = True

    return record


def training_examples(record: GameRecord) -> list[TrainingExample]:
    """
    Convert a game into training examples.

    Parameters
    ----------
    record : GameRecord
        A played game.

    Returns
    -------
    list[TrainingExample]
        One example per position, with the value target signed for the player to move.
    """
    examples = []
    for ply, (state, stats) in enumerate(zip(record.states, record.stats, strict=True)):
        value = record.outcome if ply % 2 == 0 else -record.outcome
        examples.append(TrainingExample(state=state, policy=dict(stats.search_policy), value=value))
    return examples


def generate_games(
    players: Sequence[Actor],
    initial_state: BoardState,
    num_games: int,
    max_moves: int | None = None,
    show_progress: bool = False,
) -> list[GameRecord]:
    """
    Play several games.

    Parameters
    ----------
    players : Sequence[Actor]
        Actors in turn order.
    initial_state : BoardState
        Starting position of every game.
    num_games : int
        Number of games.
    max_moves : int | None
        Move limit per game.
    show_progress : bool
        Display a progress bar.

    Returns
    -------
    list[GameRecord]
        The played games.
    """
    records = []
    for _ in tqdm(range(num_games), desc='Self-play', disable=not show_progress):
        records.append(play_game(players, initial_state, max_moves=max_moves))
    _logger.info('Generated %d games, %d positions.', len(records), sum(len(record) for record in records))
    return records
