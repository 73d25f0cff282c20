"""Game constants."""

GRID_W, GRID_H = 20, 30
INITIAL_LENGTH = 3
BASE_FOOD_SCORE = 10
FOOD_PLACEMENT_ATTEMPTS = 1000

DIRECTIONS = {
    "up": (0, -1),
    "down": (0, 1),
    "left": (-1, 0),
    "right": (1, 0),
}
OPPOSITES = {"up": "down", "down": "up", "left": "right", "right": "left"}

WRAP = "wrap"
SOLID = "solid"
WALL_POLICIES = (WRAP, SOLID)

# tick_ms: scheduler period, lower is harder
DIFFICULTIES = {
    "easy": {"label": "Easy", "tick_ms": 150, "multiplier": 1},
    "medium": {"label": "Medium", "tick_ms": 100, "multiplier": 1.5},
    "hard": {"label": "Hard", "tick_ms": 60, "multiplier": 2},
    "expert": {"label": "Expert", "tick_ms": 40, "multiplier": 3},
}
DEFAULT_DIFFICULTY = "medium"

ROOM_CODE_LENGTH = 6
ROOM_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
ROOMS_PATH = "rooms"
ROOM_TTL = 3600.0
SWEEP_INTERVAL = 60.0

RECONNECT_DELAY = 1.0
REQUEST_TIMEOUT = 10.0
PUBLISH_RETRY_DELAY = 0.2
PUBLISH_MAX_RETRY_DELAY = 2.0
FLUSH_TIMEOUT = 5.0

HIGH_SCORE_CAP = 100
HIGH_SCORE_DISPLAY = 50
DEFAULT_PLAYER_NAME = "Player"
