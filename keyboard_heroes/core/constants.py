from __future__ import annotations

# Logical play area. Letters spawn inside [SPAWN_MARGIN_X, SPAWN_MARGIN_X + SPAWN_WIDTH].
PLAY_AREA_WIDTH = 800
PLAY_AREA_HEIGHT = 500
SPAWN_MARGIN_X = 50
SPAWN_WIDTH = 700

TICK_INTERVAL_MS = 100
SPAWN_PROBABILITY = 0.3

# Applied every tick, not every second.
SPEED_RAMP_SCALE = 0.01

HIT_REWARD = 20

DEFAULT_INITIAL_FALL_SPEED = 1.0
DEFAULT_SPEED_INCREASE_RATE = 0.1
DEFAULT_MAX_EXPLOSIONS = 10

LOCAL_LEADERBOARD_SIZE = 10

# Stored settings keep speeds with two decimals (4 digits total).
STORED_SPEED_MIN = 0.01
STORED_SPEED_MAX = 99.99
