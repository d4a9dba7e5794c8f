import sys
import time
import argparse
import logging

import pygame
import numpy as np

from plinko_physics import FIELD_WIDTH, FIELD_HEIGHT, build_board
from plinko_sim import (
    FIXED_DT, SimulationState,
    advance_frame, all_settled, caught_count, clear_balls, fallen_count,
    slot_counts, spawn_balls, step_frame,
)

# =========================
# Config
# =========================
FPS = 60
DEFAULT_BALLS = 20
MAX_BALLS = 500
HUD_HEIGHT = 70

# Colors
BG_COLOR = (18, 18, 24)
PEG_COLOR = (255, 255, 255)
SLOT_COLOR = (255, 255, 255)
TEXT_COLOR = (220, 220, 220)
TALLY_COLOR = (0, 255, 180)

LOG_FORMAT = "%(levelname)s: %(message)s"


# =========================
# Drawing
# =========================
def draw_text(surface, text, x, y, font):
    surface.blit(font.render(text, True, TEXT_COLOR), (x, y))

def draw_peg(surface, peg, oy=0):
    pygame.draw.circle(surface, PEG_COLOR, (int(peg.x), int(peg.y + oy)), max(1, int(round(peg.radius))))

def draw_slot(surface, slot, field_height, oy=0):
    # left, bottom and right walls only; the top stays open
    top = int(slot.top(field_height) + oy)
    bottom = int(field_height + oy) - 1
    left = int(slot.left)
    right = int(slot.right)
    pygame.draw.lines(surface, SLOT_COLOR, False, [(left, top), (left, bottom), (right, bottom), (right, top)], 1)

def draw_ball(surface, ball, oy=0):
    pygame.draw.circle(surface, ball.color, (int(ball.x), int(ball.y + oy)), int(round(ball.radius)))

def draw_tallies(surface, state, font, oy=0):
    board = state.board
    counts = slot_counts(state)
    for slot, count in zip(board.slots, counts):
        if count == 0:
            continue
        img = font.render(str(int(count)), True, TALLY_COLOR)
        x = int(slot.left + slot.width / 2 - img.get_width() / 2)
        y = int(slot.top(board.height) + oy) - img.get_height() - 2
        surface.blit(img, (x, y))

def draw_scene(surface, state, oy=0):
    """Hand every peg, slot and ball to the draw routines, once each."""
    board = state.board
    for peg in board.pegs:
        draw_peg(surface, peg, oy)
    for slot in board.slots:
        draw_slot(surface, slot, board.height, oy)
    for ball in state.balls:
        draw_ball(surface, ball, oy)

def draw_hud(surface, state, font, n_next, fps, paused):
    mode = "fixed" if state.fixed_dt is not None else "frame"
    draw_text(surface, f"balls={len(state.balls)}  caught={caught_count(state)}  lost={fallen_count(state)}", 8, 6, font)
    draw_text(surface, f"next drop N={n_next}  dt={mode}  FPS~{fps:5.1f}{'  [PAUSED]' if paused else ''}", 8, 26, font)
    draw_text(surface, "Space=drop  Up/Down=N  C=clear  P=pause", 8, 46, font)


# =========================
# Runs
# =========================
def run_headless(state, n_balls, seconds):
    """Simulate without a window and log where the balls ended up."""
    spawn_balls(state, n_balls)
    dt = state.fixed_dt if state.fixed_dt is not None else 1.0 / FPS
    total = max(1, int(seconds / dt))
    progress_step = max(1, total // 10)
    for i in range(1, total + 1):
        step_frame(state, dt)
        if i % progress_step == 0:
            logging.info(f"t={i*dt:5.2f}s caught {caught_count(state)}/{len(state.balls)}")
        if all_settled(state):
            logging.info(f"All balls settled after {i*dt:.2f}s.")
            break

    counts = slot_counts(state)
    logging.info("Slot tally: " + " ".join(f"{int(c):3d}" for c in counts))
    if fallen_count(state):
        logging.warning(f"{fallen_count(state)} balls fell outside the slot row.")
    return counts


def run_window(state, n_balls, fps=FPS):
    pygame.init()
    width = int(np.ceil(state.board.width))
    height = int(np.ceil(state.board.height))
    screen = pygame.display.set_mode((width, height + HUD_HEIGHT))
    pygame.display.set_caption("Plinko Board")
    clock = pygame.time.Clock()
    font = pygame.font.SysFont("consolas", 14)

    n_next = n_balls
    spawn_balls(state, n_next)
    paused = False
    fps_ema = 0.0
    ema_alpha = 0.12

    running = True
    while running:
        dt_ms = clock.tick(fps)

        # ---- events
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                running = False

            if event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    running = False
                elif event.key in (pygame.K_SPACE, pygame.K_RETURN):
                    spawn_balls(state, n_next)
                elif event.key == pygame.K_c:
                    clear_balls(state)
                elif event.key == pygame.K_p:
                    paused = not paused
                    # restart the clock so the pause isn't integrated on resume
                    state.last_time = None
                    state.accumulator = 0.0
                elif event.key == pygame.K_UP:
                    n_next = min(MAX_BALLS, n_next + 1)
                elif event.key == pygame.K_DOWN:
                    n_next = max(0, n_next - 1)
                elif event.key == pygame.K_PAGEUP:
                    n_next = min(MAX_BALLS, n_next + 10)
                elif event.key == pygame.K_PAGEDOWN:
                    n_next = max(0, n_next - 10)

        # ---- physics
        if not paused:
            advance_frame(state, time.perf_counter())

        # ---- draw
        screen.fill(BG_COLOR)
        draw_scene(screen, state, oy=HUD_HEIGHT)
        draw_tallies(screen, state, font, oy=HUD_HEIGHT)

        inst_fps = 1000.0 / max(1, dt_ms)
        fps_ema = (1 - ema_alpha) * fps_ema + ema_alpha * inst_fps
        draw_hud(screen, state, font, n_next, fps_ema, paused)

        pygame.display.flip()

    logging.info(f"Closing with {caught_count(state)}/{len(state.balls)} balls caught.")
    pygame.quit()


# =========================
# CLI
# =========================
def build_parser():
    p = argparse.ArgumentParser(description="Balls fall through a peg field into slots.")
    p.add_argument("--balls", type=int, default=DEFAULT_BALLS, help="balls per drop")
    p.add_argument("--width", type=float, default=FIELD_WIDTH, help="play-field width in px")
    p.add_argument("--height", type=float, default=FIELD_HEIGHT, help="play-field height in px")
    p.add_argument("--fps", type=int, default=FPS)
    p.add_argument("--seed", type=int, default=None, help="seed for spawn positions and colors")
    p.add_argument("--variable-step", action="store_true",
                   help="follow each frame's own dt instead of draining fixed ticks")
    p.add_argument("--headless", action="store_true", help="simulate without opening a window")
    p.add_argument("--seconds", type=float, default=15.0, help="simulated time for --headless")
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return p


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format=LOG_FORMAT)

    if not 0 <= args.balls <= MAX_BALLS:
        parser.error(f"--balls must be between 0 and {MAX_BALLS}")
    if args.fps <= 0:
        parser.error("--fps must be positive")
    try:
        board = build_board(args.width, args.height)
    except ValueError as e:
        parser.error(str(e))

    state = SimulationState(
        board,
        rng=np.random.default_rng(args.seed),
        fixed_dt=None if args.variable_step else FIXED_DT,
    )
    try:
        if args.headless:
            run_headless(state, args.balls, args.seconds)
        else:
            run_window(state, args.balls, args.fps)
    except Exception as e:
        logging.exception(f"Fatal error: {e}.")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
