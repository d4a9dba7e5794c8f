import math
import logging

import numpy as np

from plinko_physics import (
    BALL_RADIUS, BALL_START_VY,
    Ball, build_board, caught_slot_index, has_fallen_out, update_ball,
)

# =========================
# Timing
# =========================
FIXED_DT = 1.0 / 120.0   # physics tick when running on the accumulator
MAX_TICK_DT = 1.0 / 120.0  # no single tick integrates more than this
MAX_FRAME_DT = 0.25      # frame gaps longer than this (backgrounded window) are dropped


class SimulationState:
    """
    Everything the loop owns: the static board, the live balls and the
    frame clock. Passed explicitly to update and render functions.
    """
    def __init__(self, board=None, rng=None, fixed_dt=FIXED_DT):
        if fixed_dt is not None and not 0.0 < fixed_dt <= MAX_TICK_DT:
            raise ValueError(f"fixed_dt must be in (0, {MAX_TICK_DT:.5f}], got {fixed_dt}.")
        self.board = board if board is not None else build_board()
        self.balls = []
        self.rng = rng if rng is not None else np.random.default_rng()
        self.fixed_dt = fixed_dt
        self.last_time = None
        self.accumulator = 0.0
        self.ticks = 0


def random_color(rng):
    return tuple(int(c) for c in rng.uniform(0, 255, size=3))


def spawn_balls(state, n):
    """Replace the ball collection with n fresh balls along the top edge."""
    n = int(n)
    if n < 0:
        raise ValueError(f"Ball count must be >= 0, got {n}.")
    width = state.board.width
    xs = state.rng.uniform(0.0, width, size=n)
    start_y = BALL_RADIUS * 2
    state.balls = [
        Ball(float(x), start_y, vx=0.0, vy=BALL_START_VY, color=random_color(state.rng))
        for x in xs
    ]
    logging.info(f"Dropped {n} balls across a {width:.1f}px wide board.")
    return state.balls


def clear_balls(state):
    state.balls = []


def step_simulation(state, dt):
    """One physics tick over every live ball. Returns how many were updated."""
    dt = min(max(0.0, float(dt)), MAX_TICK_DT)
    board = state.board
    updated = 0
    for ball in state.balls:
        if ball.caught or has_fallen_out(ball, board):
            continue
        update_ball(ball, board, dt)
        updated += 1
    state.ticks += 1
    return updated


def step_frame(state, frame_dt):
    """
    Cover frame_dt seconds with as few equal ticks as MAX_TICK_DT allows.
    Returns ticks run.
    """
    frame_dt = max(0.0, float(frame_dt))
    ticks = max(1, int(math.ceil(frame_dt / MAX_TICK_DT - 1e-9)))
    for _ in range(ticks):
        step_simulation(state, frame_dt / ticks)
    return ticks


def advance_frame(state, now_s):
    """
    Feed a frame timestamp (seconds). The first call only starts the clock.
    With fixed_dt set, elapsed time is drained in fixed ticks; otherwise the
    whole (clamped) frame is covered by step_frame. Returns ticks run.
    """
    if state.last_time is None:
        state.last_time = now_s
        return 0
    frame_dt = now_s - state.last_time
    state.last_time = now_s
    frame_dt = min(max(0.0, frame_dt), MAX_FRAME_DT)

    if state.fixed_dt is None:
        return step_frame(state, frame_dt)

    state.accumulator += frame_dt
    ticks = 0
    while state.accumulator >= state.fixed_dt:
        step_simulation(state, state.fixed_dt)
        state.accumulator -= state.fixed_dt
        ticks += 1
    if ticks > 1:
        logging.debug(f"Frame of {frame_dt*1000:.1f}ms ran {ticks} ticks.")
    return ticks


# =========================
# Stats
# =========================
def caught_count(state):
    return sum(1 for b in state.balls if b.caught)


def fallen_count(state):
    return sum(1 for b in state.balls if has_fallen_out(b, state.board))


def slot_counts(state):
    """Caught balls per slot, as an int array the length of the slot row."""
    idx = [caught_slot_index(b, state.board) for b in state.balls]
    idx = [i for i in idx if i is not None]
    return np.bincount(np.array(idx, dtype=int), minlength=len(state.board.slots))


def all_settled(state):
    board = state.board
    return all(b.caught or has_fallen_out(b, board) for b in state.balls)
