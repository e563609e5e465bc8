"""
Configuration for Monte Carlo Tree Search.

Defaults follow the AlphaZero setup: PUCT selection with a moderate exploration constant,
greedy move selection and no root noise unless requested.
"""

from dataclasses import dataclass


@dataclass(kw_only=True)
class MCTSConfig:
    """
    Configuration for a search driver.

    Attributes
    ----------
    simulation_count : int
        Number of simulations run per decision.
    exploration_constant : float
        The c_puct constant of the PUCT formula.
    temperature : float
        Final move selection temperature. 0 picks the most visited move.
    alternating : bool
        Whether the player to move alternates at every ply (two-player zero-sum games).
    unvisited_value : float
        Value estimate used for a child that was never visited, from the parent's perspective.
    dirichlet_alpha : float
        Alpha of the Dirichlet noise mixed into the root priors.
    dirichlet_fraction : float
        Weight of the root noise. 0 disables it.
    num_workers : int
        Number of threads running simulations concurrently. 1 is the sequential search.
    reuse_tree : bool
        Keep the subtree of the committed move for the next decision.
    seed : int | None
        Seed of the random generator used for noise and move sampling.
    """

    # ##>: Search budget.
    simulation_count: int = 100
    exploration_constant: float = 1.25

    # ##>: Move selection.
    temperature: float = 0.0

    # ##>: Value perspective.
    alternating: bool = True
    unvisited_value: float = 0.0

    # ##>: Root exploration noise.
    dirichlet_alpha: float = 0.3
    dirichlet_fraction: float = 0.0

    # ##>: Execution.
    num_workers: int = 1
    reuse_tree: bool = False
    seed: int | None = None

    def __post_init__(self):
        """Validate the parameters."""
        if self.simulation_count < 1:
            raise ValueError(f'simulation_count must be at least 1, got {self.simulation_count}.')
        if self.exploration_constant < 0:
            raise ValueError(f'exploration_constant must be non-negative, got {self.exploration_constant}.')
        if self.temperature < 0:
            raise ValueError(f'temperature must be non-negative, got {self.temperature}.')
        if not 0.0 <= self.dirichlet_fraction <= 1.0:
            raise ValueError(f'dirichlet_fraction must be in [0, 1], got {self.dirichlet_fraction}.')
        if self.dirichlet_alpha <= 0:
            raise ValueError(f'dirichlet_alpha must be positive, got {self.dirichlet_alpha}.')
        if self.num_workers < 1:
            raise ValueError(f'num_workers must be at least 1, got {self.num_workers}.')
