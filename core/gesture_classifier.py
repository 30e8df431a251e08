import logging
import math
from collections import deque
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Deque, Iterable, List, Optional, Tuple

import numpy as np

import config
from core.errors import MalformedObservation
from core.observation import (
    Hand,
    Observation,
    INDEX_MCP,
    INDEX_PIP,
    INDEX_TIP,
    MIDDLE_MCP,
    MIDDLE_PIP,
    MIDDLE_TIP,
    PINKY_MCP,
    PINKY_PIP,
    PINKY_TIP,
    RING_PIP,
    RING_TIP,
    THUMB_IP,
    THUMB_TIP,
    WRIST,
)
from utils.smoothing import approach

logger = logging.getLogger(__name__)

Vec3 = Tuple[float, float, float]


class Gesture(str, Enum):
    # 声明顺序即平局时的优先顺序，不可调整
    OPEN = "open"
    CLOSED = "closed"
    NEUTRAL = "neutral"
    PEACE = "peace"


class HandMode(str, Enum):
    NONE = "none"      # 没有可用的手
    SINGLE = "single"  # 单手：离散手势 + 姿态
    PAIR = "pair"      # 双手：只用手间距离


class GestureHistory:
    """Fixed-capacity ring buffer of raw per-frame gestures."""

    def __init__(self, maxlen: int = config.GESTURE_HISTORY_SIZE, samples: Iterable[Gesture] = ()):
        if maxlen < 1:
            raise ValueError("history size must be at least 1")
        self._samples: Deque[Gesture] = deque(samples, maxlen=maxlen)

    @property
    def maxlen(self) -> int:
        return self._samples.maxlen

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self):
        return iter(self._samples)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GestureHistory):
            return NotImplemented
        return self.maxlen == other.maxlen and list(self._samples) == list(other._samples)

    def __hash__(self) -> int:
        # GestureState 是 frozen dataclass，需要可哈希
        return hash((self.maxlen, tuple(self._samples)))

    def __repr__(self) -> str:
        return f"GestureHistory({[g.value for g in self._samples]}, maxlen={self.maxlen})"

    def copy(self) -> "GestureHistory":
        return GestureHistory(self.maxlen, self._samples)

    def push(self, gesture: Gesture) -> None:
        self._samples.append(gesture)

    def clear(self) -> None:
        self._samples.clear()

    def majority(self) -> Gesture:
        """
        历史中出现次数最多的手势。

        按枚举顺序扫描，只有严格大于当前最大值才替换，
        所以平局时枚举中靠前的手势胜出；空历史返回 NEUTRAL。
        """
        counts = {g: 0 for g in Gesture}
        for g in self._samples:
            counts[g] += 1

        result = Gesture.NEUTRAL
        max_count = 0
        for g in Gesture:
            if counts[g] > max_count:
                max_count = counts[g]
                result = g
        return result


@dataclass(frozen=True)
class ControlSignals:
    position: Vec3 = (0.0, 0.0, 0.0)
    rotation_z: float = 0.0
    rotation_y: float = 0.0
    hand_distance: Optional[float] = None  # 仅 PAIR 模式有值
    hand_mode: HandMode = HandMode.NONE


@dataclass(frozen=True)
class GestureState:
    gesture: Gesture = Gesture.NEUTRAL
    signals: ControlSignals = field(default_factory=ControlSignals)
    history: GestureHistory = field(default_factory=GestureHistory)

    @property
    def hand_tracked(self) -> bool:
        """True while one-hand gesture control drives the rotation."""
        return len(self.history) > 0


def finger_extended(hand: Hand, tip_idx: int, pip_idx: int) -> bool:
    # 指尖比中间关节更高（归一化 y 更小）即视为伸直
    return hand.landmarks[tip_idx][1] < hand.landmarks[pip_idx][1]


def fingers_extended(hand: Hand) -> List[bool]:
    """[thumb, index, middle, ring, pinky]"""
    return [
        finger_extended(hand, THUMB_TIP, THUMB_IP),
        finger_extended(hand, INDEX_TIP, INDEX_PIP),
        finger_extended(hand, MIDDLE_TIP, MIDDLE_PIP),
        finger_extended(hand, RING_TIP, RING_PIP),
        finger_extended(hand, PINKY_TIP, PINKY_PIP),
    ]


def detect_gesture(hand: Hand) -> Gesture:
    """Raw single-frame classification of one hand."""
    _, index, middle, ring, pinky = fingers_extended(hand)
    # 拇指不计数，识别更稳定
    extended = sum((index, middle, ring, pinky))

    # 剪刀手：食指+中指伸直，无名指弯曲（小指状态不限）
    if index and middle and not ring:
        return Gesture.PEACE
    if extended >= 3:
        return Gesture.OPEN
    if extended <= 1:
        return Gesture.CLOSED
    return Gesture.NEUTRAL


def hand_roll(hand: Hand) -> float:
    """Angle of wrist -> middle MCP, zero when the fingers point straight up."""
    wx, wy, _ = hand.landmarks[WRIST]
    mx, my, _ = hand.landmarks[MIDDLE_MCP]
    return math.atan2(my - wy, mx - wx) + math.pi / 2


def hand_yaw(hand: Hand, sensitivity: float = config.YAW_SENSITIVITY) -> float:
    """Approximate left/right turn from the index/pinky knuckle depth difference."""
    return (hand.landmarks[INDEX_MCP][2] - hand.landmarks[PINKY_MCP][2]) * sensitivity


class GestureClassifier:
    """
    手数状态机：0 手 / 1 手 / 2 手（超过 2 手按 0 手处理）。

    classify() 不修改传入状态，返回新的 GestureState；
    关键点不完整时抛出 MalformedObservation，由调用方保留上一帧状态。
    """

    def __init__(
        self,
        history_size: int = config.GESTURE_HISTORY_SIZE,
        position_scale: float = config.POSITION_SCALE,
        distance_min: float = config.HAND_DISTANCE_MIN,
        distance_max: float = config.HAND_DISTANCE_MAX,
        yaw_sensitivity: float = config.YAW_SENSITIVITY,
        yaw_gain: float = config.YAW_GAIN,
        no_hand_decay: float = config.NO_HAND_POSITION_DECAY,
        lock_on_exit: bool = False,
    ) -> None:
        if distance_max <= distance_min:
            raise ValueError("distance_max must be greater than distance_min")
        self.history_size = history_size
        self.position_scale = position_scale
        self.distance_min = distance_min
        self.distance_max = distance_max
        self.yaw_sensitivity = yaw_sensitivity
        self.yaw_gain = yaw_gain
        self.no_hand_decay = no_hand_decay
        self.lock_on_exit = lock_on_exit

    def initial_state(self) -> GestureState:
        return GestureState(history=GestureHistory(self.history_size))

    def to_world(self, x: float, y: float, z: float) -> Vec3:
        # X 居中，Y 翻转（屏幕向下为正），Z 深度减半
        s = self.position_scale
        return ((x - 0.5) * s, (0.5 - y) * s, z * s * 0.5)

    def hand_distance(self, hand1: Hand, hand2: Hand) -> float:
        x1, y1, _ = hand1.landmarks[WRIST]
        x2, y2, _ = hand2.landmarks[WRIST]
        distance = math.hypot(x1 - x2, y1 - y2)
        normalized = (distance - self.distance_min) / (self.distance_max - self.distance_min)
        return max(0.0, min(1.0, normalized))

    def classify(self, observation: Observation, previous: GestureState) -> GestureState:
        hands = observation.hands
        if len(hands) == 1:
            return self._classify_single(hands[0], previous)
        if len(hands) == 2:
            return self._classify_pair(hands[0], hands[1], previous)
        if len(hands) > 2:
            logger.debug("ignoring observation with %d hands", len(hands))
        return self._classify_empty(previous)

    def _classify_empty(self, previous: GestureState) -> GestureState:
        history = GestureHistory(previous.history.maxlen)
        if self.lock_on_exit:
            # 锁定：手势和控制信号全部冻结，只清空历史
            return replace(previous, history=history)

        position = approach(np.asarray(previous.signals.position), 0.0, self.no_hand_decay)
        signals = replace(
            previous.signals,
            position=tuple(float(v) for v in position),
            hand_distance=None,
            hand_mode=HandMode.NONE,
        )
        return GestureState(gesture=Gesture.NEUTRAL, signals=signals, history=history)

    def _classify_single(self, hand: Hand, previous: GestureState) -> GestureState:
        hand = hand.validated()

        raw = detect_gesture(hand)
        history = previous.history.copy()
        history.push(raw)
        gesture = history.majority()

        signals = ControlSignals(
            position=self.to_world(*hand.landmarks[WRIST]),
            rotation_z=-hand_roll(hand),
            rotation_y=hand_yaw(hand, self.yaw_sensitivity) * self.yaw_gain,
            hand_distance=None,
            hand_mode=HandMode.SINGLE,
        )
        if gesture != previous.gesture:
            logger.debug("gesture %s -> %s (raw %s)", previous.gesture.value, gesture.value, raw.value)
        return GestureState(gesture=gesture, signals=signals, history=history)

    def _classify_pair(self, hand1: Hand, hand2: Hand, previous: GestureState) -> GestureState:
        hand1 = hand1.validated()
        hand2 = hand2.validated()

        x1, y1, z1 = hand1.landmarks[WRIST]
        x2, y2, z2 = hand2.landmarks[WRIST]
        signals = replace(
            previous.signals,
            position=self.to_world((x1 + x2) / 2, (y1 + y2) / 2, (z1 + z2) / 2),
            hand_distance=self.hand_distance(hand1, hand2),
            hand_mode=HandMode.PAIR,
        )
        return GestureState(
            gesture=Gesture.NEUTRAL,
            signals=signals,
            history=GestureHistory(previous.history.maxlen),
        )


def classify(
    observation: Observation,
    previous: Optional[GestureState] = None,
    classifier: Optional[GestureClassifier] = None,
) -> GestureState:
    """Module-level convenience wrapper around GestureClassifier.classify()."""
    classifier = classifier or GestureClassifier()
    if previous is None:
        previous = classifier.initial_state()
    return classifier.classify(observation, previous)


__all__ = [
    "ControlSignals",
    "Gesture",
    "GestureClassifier",
    "GestureHistory",
    "GestureState",
    "HandMode",
    "MalformedObservation",
    "classify",
    "detect_gesture",
    "fingers_extended",
    "hand_roll",
    "hand_yaw",
]
