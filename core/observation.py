"""
手部观测数据模型 (Observation)

姿态源（MediaPipe 等）与渲染主循环之间唯一共享的数据。
- Hand / Observation 均为不可变对象，只替换、不修改。
- ObservationSlot 实现"最后写入者胜出"的交换：生产者线程整体替换快照，
  主循环读取时永远不会等待，也不会读到写了一半的关键点。
"""

import math
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Sequence, Tuple

from core.errors import MalformedObservation

# Landmark indices (MediaPipe Hands topology)
WRIST = 0
THUMB_IP = 3
THUMB_TIP = 4
INDEX_MCP = 5
INDEX_PIP = 6
INDEX_TIP = 8
MIDDLE_MCP = 9
MIDDLE_PIP = 10
MIDDLE_TIP = 12
RING_PIP = 14
RING_TIP = 16
PINKY_MCP = 17
PINKY_PIP = 18
PINKY_TIP = 20

NUM_LANDMARKS = 21

NormPoint3 = Tuple[float, float, float]


def _coerce_point(index: int, point: Any) -> NormPoint3:
    """Accept (x, y, z) sequences or objects exposing .x/.y/.z."""
    if point is None:
        raise MalformedObservation(f"landmark {index} is missing")
    try:
        if hasattr(point, "x"):
            x, y, z = point.x, point.y, point.z
        else:
            x, y, z = point
        x, y, z = float(x), float(y), float(z)
    except (AttributeError, TypeError, ValueError) as exc:
        raise MalformedObservation(f"landmark {index} is not an (x, y, z) point") from exc

    if not (math.isfinite(x) and math.isfinite(y) and math.isfinite(z)):
        raise MalformedObservation(f"landmark {index} has non-finite coordinates")
    return x, y, z


@dataclass(frozen=True)
class Hand:
    landmarks: Tuple[NormPoint3, ...]
    handedness: str = ""
    confidence: float = 1.0

    @classmethod
    def from_points(
        cls,
        points: Sequence[Any],
        handedness: str = "",
        confidence: float = 1.0,
    ) -> "Hand":
        """Build a validated hand from 21 landmark-like records."""
        if points is None or len(points) < NUM_LANDMARKS:
            count = 0 if points is None else len(points)
            raise MalformedObservation(
                f"expected {NUM_LANDMARKS} landmarks, got {count}"
            )
        landmarks = tuple(_coerce_point(i, p) for i, p in enumerate(points[:NUM_LANDMARKS]))
        return cls(landmarks=landmarks, handedness=handedness, confidence=confidence)

    def validated(self) -> "Hand":
        """Return a copy with coerced (x, y, z) tuples; raise MalformedObservation if unusable."""
        return Hand.from_points(self.landmarks, self.handedness, self.confidence)

    def point(self, index: int) -> NormPoint3:
        return self.landmarks[index]


@dataclass(frozen=True)
class Observation:
    hands: Tuple[Hand, ...] = ()
    timestamp: float = field(default_factory=time.monotonic)

    @classmethod
    def of(cls, hands: Iterable[Hand], timestamp: Optional[float] = None) -> "Observation":
        if timestamp is None:
            return cls(hands=tuple(hands))
        return cls(hands=tuple(hands), timestamp=timestamp)

    @property
    def hand_count(self) -> int:
        return len(self.hands)


class ObservationSlot:
    """
    单槽位观测缓冲区（容量为 1，只保留最新）

    生产者调用 publish() 整体替换引用；消费者调用 take_if_newer()
    取出比上次更新的观测。锁只保护"引用 + 序号"这一对值的交换，
    持有时间是常数级，主循环不会因为姿态源而阻塞。
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._latest: Optional[Observation] = None
        self._sequence = 0

    def publish(self, observation: Observation) -> int:
        with self._lock:
            self._latest = observation
            self._sequence += 1
            return self._sequence

    def latest(self) -> Tuple[int, Optional[Observation]]:
        with self._lock:
            return self._sequence, self._latest

    def take_if_newer(self, last_seen: int) -> Tuple[int, Optional[Observation]]:
        """Return (sequence, observation) if something newer than last_seen exists."""
        sequence, observation = self.latest()
        if sequence == last_seen:
            return last_seen, None
        return sequence, observation
