# -*- coding: utf-8 -*-
"""
异步姿态源 (Async Pose Source)

核心目标：MediaPipe 推理耗时不能拖慢粒子动画。
实现原理：
1. 生产者-消费者模型：主线程提交帧，子线程推理并把 Observation 发布到 ObservationSlot。
2. 丢帧策略 (Frame Dropping)：推理线程只处理最新帧，自动丢弃积压的旧帧。
3. 最后写入者胜出：主循环从槽位读取最新观测，永远不等待推理结果。
"""

import logging
import threading
import time
from typing import Any, Optional

import cv2
import numpy as np

import config
from core.observation import Observation, ObservationSlot

logger = logging.getLogger(__name__)


def _default_detector() -> Any:
    # 延迟导入：只有真正需要摄像头推理时才加载 mediapipe
    from core.hand_detector import HandDetector
    return HandDetector()


class AsyncPoseSource:
    """
    异步姿态源 (AsyncPoseSource)

    在独立守护线程 (Daemon Thread) 中运行手部检测，
    每次推理完成后把不可变的 Observation 整体发布到槽位。

    Attributes:
        slot (ObservationSlot): 结果发布的目标槽位。
        _detector: 同步检测器，需提供 detect(frame, timestamp) 和 close()。
        _infer_width (int): 推理时的缩放宽度。
        _infer_height (int): 推理时的缩放高度。
        _frame_lock (Lock): 保护 _latest_frame 的互斥锁。
    """

    slot: ObservationSlot
    _detector: Any
    _infer_width: int
    _infer_height: int
    _running: bool
    _thread: Optional[threading.Thread]
    _frame_lock: threading.Lock
    _latest_frame: Optional[np.ndarray]
    _latest_timestamp: float
    _frame_ready: threading.Event

    def __init__(
        self,
        slot: ObservationSlot,
        detector: Optional[Any] = None,
        infer_width: int = config.INFER_WIDTH,
        infer_height: int = config.INFER_HEIGHT,
    ) -> None:
        self.slot = slot
        self._detector = detector if detector is not None else _default_detector()
        self._infer_width = infer_width
        self._infer_height = infer_height

        # 线程控制
        self._running = False
        self._thread = None

        # 帧缓冲区（容量为1，只保留最新）
        self._frame_lock = threading.Lock()
        self._latest_frame = None
        self._latest_timestamp = 0.0
        self._frame_ready = threading.Event()

        self.processed_frames = 0
        self.failed_frames = 0

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """启动后台推理线程。"""
        if self._running:
            return

        self._running = True
        self._thread = threading.Thread(target=self._inference_loop, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """停止后台线程并释放资源。"""
        self._running = False
        self._frame_ready.set()  # 唤醒线程以便让它检查 _running 标志并退出

        if self._thread is not None:
            self._thread.join(timeout=1.0)
            self._thread = None

        self._detector.close()

    def submit_frame(self, frame: np.ndarray) -> None:
        """
        提交新帧进行检测（非阻塞）。

        如果推理线程正在忙，旧的待处理帧会被直接覆盖（丢帧策略）。

        Args:
            frame (np.ndarray): 原始 BGR 图像帧。
        """
        # 预先缩放到推理分辨率；归一化坐标不受影响
        frame_small = cv2.resize(
            frame,
            (self._infer_width, self._infer_height),
            interpolation=cv2.INTER_LINEAR,
        )

        with self._frame_lock:
            self._latest_frame = frame_small
            self._latest_timestamp = time.monotonic()

        self._frame_ready.set()

    def detect_now(self, frame: np.ndarray) -> Observation:
        """同步模式：在调用线程里推理并发布（调试用）。"""
        frame_small = cv2.resize(
            frame,
            (self._infer_width, self._infer_height),
            interpolation=cv2.INTER_LINEAR,
        )
        observation = self._detector.detect(frame_small, time.monotonic())
        self.slot.publish(observation)
        self.processed_frames += 1
        return observation

    def _inference_loop(self) -> None:
        """
        后台推理主循环。

        逻辑：等待事件 -> 获取帧 -> 推理 -> 发布观测 -> 循环。
        """
        while self._running:
            # timeout=0.1 确保没有新帧时线程也能定期醒来检查 _running
            self._frame_ready.wait(timeout=0.1)

            if not self._running:
                break

            frame: Optional[np.ndarray] = None
            timestamp = 0.0
            with self._frame_lock:
                if self._latest_frame is not None:
                    frame = self._latest_frame
                    timestamp = self._latest_timestamp
                    self._latest_frame = None
                    self._frame_ready.clear()

            if frame is None:
                continue

            try:
                observation = self._detector.detect(frame, timestamp)
            except Exception:
                # 推理失败不发布，槽位中保留上一次的观测
                self.failed_frames += 1
                logger.warning("hand inference failed", exc_info=True)
                continue

            self.slot.publish(observation)
            self.processed_frames += 1


class PoseSource:
    """
    姿态源统一接口 (Facade Pattern)

    async_mode=True：后台线程推理，主循环零等待（生产环境）。
    async_mode=False：在主线程同步推理，便于定位错误（调试）。
    """

    def __init__(
        self,
        slot: ObservationSlot,
        async_mode: bool = config.ASYNC_INFERENCE,
        detector: Optional[Any] = None,
        infer_width: int = config.INFER_WIDTH,
        infer_height: int = config.INFER_HEIGHT,
    ) -> None:
        self.async_mode = async_mode
        self._source = AsyncPoseSource(
            slot,
            detector=detector,
            infer_width=infer_width,
            infer_height=infer_height,
        )

    def start(self) -> None:
        if self.async_mode:
            self._source.start()

    def stop(self) -> None:
        self._source.stop()

    def feed(self, frame: np.ndarray) -> None:
        """提交一帧摄像头画面。"""
        if self.async_mode:
            self._source.submit_frame(frame)
        else:
            self._source.detect_now(frame)
