import numpy as np
import pytest

from core.observation import (
    Hand,
    Observation,
    WRIST,
    THUMB_IP,
    THUMB_TIP,
    INDEX_MCP,
    INDEX_PIP,
    INDEX_TIP,
    MIDDLE_MCP,
    MIDDLE_PIP,
    MIDDLE_TIP,
    RING_PIP,
    RING_TIP,
    PINKY_MCP,
    PINKY_PIP,
    PINKY_TIP,
    NUM_LANDMARKS,
)

FINGERS = {
    "thumb": (THUMB_TIP, THUMB_IP),
    "index": (INDEX_TIP, INDEX_PIP),
    "middle": (MIDDLE_TIP, MIDDLE_PIP),
    "ring": (RING_TIP, RING_PIP),
    "pinky": (PINKY_TIP, PINKY_PIP),
}


def build_hand(
    thumb=False,
    index=False,
    middle=False,
    ring=False,
    pinky=False,
    wrist=(0.5, 0.8, 0.0),
    middle_mcp=None,
    index_mcp_z=0.0,
    pinky_mcp_z=0.0,
):
    """Synthetic 21-point hand: joints at y=0.5, tips at 0.4 (extended) or 0.6 (curled)."""
    points = [[0.5, 0.6, 0.0] for _ in range(NUM_LANDMARKS)]
    states = {"thumb": thumb, "index": index, "middle": middle, "ring": ring, "pinky": pinky}
    for name, (tip, pip) in FINGERS.items():
        points[pip][1] = 0.5
        points[tip][1] = 0.4 if states[name] else 0.6

    points[WRIST] = list(wrist)
    if middle_mcp is None:
        middle_mcp = (wrist[0], wrist[1] - 0.1, 0.0)
    points[MIDDLE_MCP] = list(middle_mcp)
    points[INDEX_MCP][2] = index_mcp_z
    points[PINKY_MCP][2] = pinky_mcp_z
    return Hand.from_points([tuple(p) for p in points])


@pytest.fixture
def make_hand():
    return build_hand


@pytest.fixture
def observe():
    def _observe(*hands):
        return Observation.of(hands, timestamp=0.0)
    return _observe


@pytest.fixture
def rng():
    return np.random.default_rng(1234)
