"""Shared boards and simulation states for the plinko tests."""
import pytest
import numpy as np

from plinko_physics import Board, FIELD_WIDTH, FIELD_HEIGHT, build_board, build_slots
from plinko_sim import SimulationState


@pytest.fixture
def board():
    """Default 315 x 800 board: 15 x 8 staggered pegs over 10 slots."""
    return build_board()


@pytest.fixture
def open_board():
    """Same slot row as the default board but no pegs in the way."""
    return Board(FIELD_WIDTH, FIELD_HEIGHT, [], build_slots())


@pytest.fixture
def state(board):
    return SimulationState(board, rng=np.random.default_rng(1234))


@pytest.fixture
def open_state(open_board):
    return SimulationState(open_board, rng=np.random.default_rng(1234))
