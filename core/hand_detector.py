from typing import Any, List, Optional

import cv2
import numpy as np

try:
    import mediapipe as mp
except ImportError as exc:  # pragma: no cover - dependency provided by requirements
    raise ImportError("mediapipe is required for hand detection") from exc

import config
from core.observation import (
    Hand,
    Observation,
    WRIST,
    THUMB_TIP,
    INDEX_TIP,
    MIDDLE_TIP,
    RING_TIP,
    PINKY_TIP,
)


def hand_from_landmarks(hand_landmarks: Any, handedness: Optional[Any] = None) -> Hand:
    """Convert one MediaPipe NormalizedLandmarkList (+ handedness) into a Hand."""
    label, score = "", 1.0
    if handedness is not None:
        label = handedness.classification[0].label.upper()
        score = handedness.classification[0].score
    return Hand.from_points(list(hand_landmarks.landmark), handedness=label, confidence=score)


class HandDetector:
    def __init__(
        self,
        max_num_hands: int = config.MAX_NUM_HANDS,
        detection_confidence: float = config.DETECTION_CONFIDENCE,
        tracking_confidence: float = config.TRACKING_CONFIDENCE,
    ) -> None:
        mp_hands = mp.solutions.hands
        self._hands = mp_hands.Hands(
            max_num_hands=max_num_hands,
            model_complexity=1,
            min_detection_confidence=detection_confidence,
            min_tracking_confidence=tracking_confidence,
        )

    def close(self) -> None:
        self._hands.close()

    def detect(self, frame_bgr: np.ndarray, timestamp: Optional[float] = None) -> Observation:
        """Detect hands in a BGR frame and return them as one Observation."""
        image_rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
        results = self._hands.process(image_rgb)
        if not results.multi_hand_landmarks:
            return Observation.of((), timestamp)

        handedness_list = results.multi_handedness or [None] * len(results.multi_hand_landmarks)
        hands: List[Hand] = [
            hand_from_landmarks(hand_landmarks, handedness)
            for hand_landmarks, handedness in zip(results.multi_hand_landmarks, handedness_list)
        ]
        return Observation.of(hands, timestamp)

    def draw_hand(self, frame_bgr: np.ndarray, hand: Hand, simple: bool = True) -> None:
        """Draw landmarks (normalized coords) onto a BGR frame.

        Args:
            frame_bgr: BGR frame to draw on
            hand: Hand with normalized landmarks
            simple: If True, only draw wrist and fingertips. If False, draw the full skeleton.
        """
        h, w = frame_bgr.shape[:2]
        pts = [(int(x * w), int(y * h)) for x, y, _ in hand.landmarks]

        if simple:
            # 简化模式：只绘制手腕和 5 个指尖
            for idx in (WRIST, THUMB_TIP, INDEX_TIP, MIDDLE_TIP, RING_TIP, PINKY_TIP):
                cv2.circle(frame_bgr, pts[idx], 5, (0, 255, 0), -1, lineType=cv2.LINE_AA)
            return

        for start_idx, end_idx in mp.solutions.hands.HAND_CONNECTIONS:
            cv2.line(frame_bgr, pts[start_idx], pts[end_idx], (255, 0, 0), 2)
        for p in pts:
            cv2.circle(frame_bgr, p, 3, (0, 255, 0), -1)
