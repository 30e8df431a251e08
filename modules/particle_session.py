"""
粒子会话 (ParticleSession)

把手势分类器、粒子状态机和观测槽位组合成一个显式的上下文对象，
替代散落的全局变量：
- 姿态源线程只调用 submit_observation()（整体替换快照，不阻塞）
- 主循环每帧调用一次 tick()，得到交给渲染后端的只读快照
- UI 只通过 set_template / set_tint / set_lock_on_exit 三个 setter 交互
"""
import logging
from typing import Optional, Sequence, Union

import numpy as np

import config
from core.errors import MalformedObservation
from core.gesture_classifier import ControlSignals, Gesture, GestureClassifier, GestureState
from core.observation import Observation, ObservationSlot
from modules.particle_state import ParticleStateMachine, RenderSnapshot
from modules.shape_generator import Template, generate, resolve_template

logger = logging.getLogger(__name__)


class ParticleSession:
    def __init__(
        self,
        template: Union[str, Template] = config.DEFAULT_TEMPLATE,
        particle_count: int = config.PARTICLE_COUNT,
        rng: Optional[np.random.Generator] = None,
        classifier: Optional[GestureClassifier] = None,
        slot: Optional[ObservationSlot] = None,
    ) -> None:
        self.rng = rng or np.random.default_rng()
        self.particle_count = particle_count
        self.classifier = classifier or GestureClassifier()
        self.slot = slot or ObservationSlot()
        self.state: GestureState = self.classifier.initial_state()
        self._last_sequence = 0
        self.malformed_count = 0

        shape = generate(template, particle_count, self.rng)
        self.particles = ParticleStateMachine(shape, rng=self.rng)

    # ------------------------------------------------------------------
    # 生产者侧（姿态源线程）
    # ------------------------------------------------------------------

    def submit_observation(self, observation: Observation) -> None:
        self.slot.publish(observation)

    # ------------------------------------------------------------------
    # UI setters
    # ------------------------------------------------------------------

    @property
    def template(self) -> Template:
        return self.particles.template

    def set_template(self, name: Union[str, Template]) -> Template:
        """重新生成粒子形状；未知模板抛出 UnknownTemplate，当前形状保持不变"""
        key = resolve_template(name)
        self.particles.load_shape(generate(key, self.particle_count, self.rng))
        return key

    def set_tint(self, rgb: Sequence[float]) -> None:
        self.particles.apply_tint_override(rgb)

    @property
    def lock_on_exit(self) -> bool:
        return self.classifier.lock_on_exit

    def set_lock_on_exit(self, locked: bool) -> None:
        self.classifier.lock_on_exit = bool(locked)
        logger.info("lock on exit %s", "enabled" if locked else "disabled")

    # ------------------------------------------------------------------
    # 消费者侧（主循环）
    # ------------------------------------------------------------------

    @property
    def gesture(self) -> Gesture:
        return self.state.gesture

    @property
    def signals(self) -> ControlSignals:
        return self.state.signals

    def consume_observation(self) -> bool:
        """
        如果槽位里有新观测就分类一次。

        关键点不完整时记录警告并保留上一帧的手势和信号。
        Returns:
            是否更新了手势状态
        """
        sequence, observation = self.slot.take_if_newer(self._last_sequence)
        if observation is None:
            return False
        self._last_sequence = sequence

        try:
            self.state = self.classifier.classify(observation, self.state)
        except MalformedObservation as exc:
            self.malformed_count += 1
            logger.warning("skipping malformed observation: %s", exc)
            return False
        return True

    def tick(self) -> RenderSnapshot:
        """每帧唯一入口：消费最新观测，然后推进粒子状态机"""
        self.consume_observation()
        return self.particles.advance(
            self.state.gesture, self.state.signals, self.state.hand_tracked
        )
