import math

# =========================
# Config
# =========================
SLOT_COUNT = 10
SLOT_WIDTH = 31.5
SLOT_HEIGHT = 50.0

FIELD_WIDTH = SLOT_WIDTH * SLOT_COUNT   # 315: exactly one row of slots
FIELD_HEIGHT = 800.0

# Peg grid
PEG_ROWS = 15
PEG_COLS = 8
PEG_RADIUS = 4.5
PEG_SPACING_X = 45.0
PEG_SPACING_Y = 48.0

# Balls
BALL_RADIUS = 7.0
BALL_START_VY = 60.0       # px/s, small downward push on spawn

# Physics (px, px/s, px/s^2)
GRAVITY = 1260.0
FRICTION = 0.75                    # vertical scale after a peg hit
PEG_CONTACT_TOLERANCE = 0.5        # px of slack before a peg counts as touched
PEG_DEFLECT_ANGLE = math.pi / 8    # offset from the contact normal on a peg hit
SLOT_BOUNCE_REDUCTION = 0.5
SLOT_REST_SPEED = 40.0             # rebound speed under which a slot keeps the ball


# =========================
# Geometry
# =========================
class Peg:
    __slots__ = ("x", "y", "radius")
    def __init__(self, x, y, radius=PEG_RADIUS):
        self.x = float(x); self.y = float(y)
        self.radius = float(radius)

    def __repr__(self):
        return f"Peg(x={self.x:.1f}, y={self.y:.1f}, r={self.radius:.1f})"


class Slot:
    """Three-sided box on the floor: left wall, right wall, bottom."""
    __slots__ = ("x", "width", "height")
    def __init__(self, x, width=SLOT_WIDTH, height=SLOT_HEIGHT):
        self.x = float(x)
        self.width = float(width)
        self.height = float(height)

    @property
    def left(self):
        return self.x

    @property
    def right(self):
        return self.x + self.width

    def top(self, field_height):
        return field_height - self.height

    def contains_x(self, x):
        return self.left <= x <= self.right

    def __repr__(self):
        return f"Slot(x={self.x:.1f}, w={self.width:.1f}, h={self.height:.1f})"


class Ball:
    __slots__ = ("x", "y", "vx", "vy", "radius", "color", "caught")
    def __init__(self, x, y, vx=0.0, vy=BALL_START_VY, radius=BALL_RADIUS, color=(255, 255, 255)):
        self.x = float(x); self.y = float(y)
        self.vx = float(vx); self.vy = float(vy)
        self.radius = float(radius)
        self.color = tuple(int(c) for c in color)
        self.caught = False

    def __repr__(self):
        state = "caught" if self.caught else "free"
        return (f"Ball(x={self.x:.1f}, y={self.y:.1f}, "
                f"vx={self.vx:.1f}, vy={self.vy:.1f}, {state})")


class Board:
    """Static layout the balls collide with. Read-only during a run."""
    __slots__ = ("width", "height", "pegs", "slots")
    def __init__(self, width, height, pegs, slots):
        self.width = float(width)
        self.height = float(height)
        self.pegs = list(pegs)
        self.slots = list(slots)

    @property
    def slot_band_top(self):
        if not self.slots:
            return self.height
        return self.height - max(s.height for s in self.slots)


def build_pegs(rows=PEG_ROWS, cols=PEG_COLS, spacing_x=PEG_SPACING_X, spacing_y=PEG_SPACING_Y,
               radius=PEG_RADIUS):
    """Staggered grid, row-major. Odd rows shift right by half a column."""
    pegs = []
    for row in range(rows):
        shift = 0.0 if row % 2 == 0 else spacing_x / 2
        y = row * spacing_y + spacing_y
        for col in range(cols):
            pegs.append(Peg(col * spacing_x + shift, y, radius))
    return pegs


def build_slots(count=SLOT_COUNT, width=SLOT_WIDTH, height=SLOT_HEIGHT):
    return [Slot(i * width, width, height) for i in range(count)]


def build_board(width=FIELD_WIDTH, height=FIELD_HEIGHT, rows=PEG_ROWS, cols=PEG_COLS,
                slot_count=SLOT_COUNT):
    if width <= 0 or height <= 0:
        raise ValueError("Board width and height must be positive.")
    if rows < 0 or cols < 0:
        raise ValueError("Peg rows and columns cannot be negative.")
    if slot_count <= 0:
        raise ValueError("A board needs at least one slot.")
    if height <= SLOT_HEIGHT + 2 * BALL_RADIUS:
        raise ValueError("Board height must leave room above the slots.")
    return Board(width, height, build_pegs(rows, cols), build_slots(slot_count))


# =========================
# Ball update
# =========================
def collide_ball_with_pegs(ball, pegs):
    """
    Bounce off the first touched peg in iteration order:
    - keep speed, leave at a fixed angle off the contact normal
    - damp the vertical part by FRICTION
    - park the ball right on the contact boundary
    A ball already moving away from a touched peg is let go.
    Returns the peg that was hit, or None.
    """
    for peg in pegs:
        dx = ball.x - peg.x
        dy = ball.y - peg.y
        contact = ball.radius + peg.radius
        dist = math.sqrt(dx*dx + dy*dy)
        if dist >= contact + PEG_CONTACT_TOLERANCE:
            continue

        if dist > 1e-12:
            nx, ny = dx / dist, dy / dist
            if ball.vx*nx + ball.vy*ny >= 0.0:
                continue
        else:
            nx, ny = 0.0, -1.0   # dead centre: push straight up
        angle = math.atan2(ny, nx)

        side = 1.0 if nx >= 0.0 else -1.0
        out = angle + side * PEG_DEFLECT_ANGLE
        speed = math.hypot(ball.vx, ball.vy)
        ball.vx = math.cos(out) * speed
        ball.vy = math.sin(out) * speed * FRICTION

        ball.x = peg.x + nx * contact
        ball.y = peg.y + ny * contact
        return peg
    return None


def collide_ball_with_walls(ball, field_width):
    if ball.x - ball.radius < 0:
        ball.x = ball.radius
        ball.vx = -ball.vx
    elif ball.x + ball.radius > field_width:
        ball.x = field_width - ball.radius
        ball.vx = -ball.vx


def slot_index_at(x, slot_width=SLOT_WIDTH):
    return int(math.floor(x / slot_width))


def collide_ball_with_slots(ball, board):
    """
    Damped bounce inside the slot under the ball. Marks the ball caught
    once it sits on the slot floor slower than SLOT_REST_SPEED.
    Returns the slot index the ball is in, or None when it is above the
    slot band or outside the slot row.
    """
    if ball.y + ball.radius <= board.slot_band_top:
        return None

    idx = slot_index_at(ball.x, board.slots[0].width) if board.slots else -1
    if not 0 <= idx < len(board.slots):
        return None
    slot = board.slots[idx]
    if not slot.contains_x(ball.x):
        return None

    # side walls
    if ball.x - ball.radius < slot.left:
        ball.x = slot.left + ball.radius
        ball.vx *= -SLOT_BOUNCE_REDUCTION
    elif ball.x + ball.radius > slot.right:
        ball.x = slot.right - ball.radius
        ball.vx *= -SLOT_BOUNCE_REDUCTION

    # floor
    if ball.y + ball.radius > board.height:
        ball.y = board.height - ball.radius
        if ball.vy > 0:
            ball.vy *= -SLOT_BOUNCE_REDUCTION
        if math.hypot(ball.vx, ball.vy) < SLOT_REST_SPEED:
            ball.vx = 0.0
            ball.vy = 0.0
            ball.caught = True
    return idx


def update_ball(ball, board, dt):
    """
    One explicit Euler tick for a single ball (dt in seconds, dt >= 0).
    Caught balls are left untouched.
    """
    if ball.caught:
        return

    # gravity + integrate
    ball.vy += GRAVITY * dt
    ball.x += ball.vx * dt
    ball.y += ball.vy * dt

    collide_ball_with_pegs(ball, board.pegs)
    collide_ball_with_walls(ball, board.width)
    collide_ball_with_slots(ball, board)


def caught_slot_index(ball, board):
    """Slot a caught ball rests in, or None for a free ball."""
    if not ball.caught:
        return None
    for i, slot in enumerate(board.slots):
        if slot.contains_x(ball.x):
            return i
    return None


def has_fallen_out(ball, board):
    return not ball.caught and ball.y - ball.radius > board.height
