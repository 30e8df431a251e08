"""
手势粒子宇宙 - 演示入口

键位：
    1-9, 0  切换模板
    c       循环色调预设
    l       开关"离手锁定"
    h       显示/隐藏摄像头小窗
    q / Esc 退出
"""
import logging
import sys
import io
import time

# 修复 Windows 终端中文输出编码
if sys.platform == 'win32':
    try:
        sys.stdout = io.TextIOWrapper(sys.stdout.buffer, encoding='utf-8', errors='replace')
        sys.stderr = io.TextIOWrapper(sys.stderr.buffer, encoding='utf-8', errors='replace')
    except Exception:
        pass

import cv2
import numpy as np
cv2.setUseOptimized(True)

import config
from core.async_detector import PoseSource
from core.hand_detector import HandDetector
from core.errors import UnknownTemplate
from modules.particle_session import ParticleSession
from modules.renderer import OpenCVPreviewRenderer
from modules.shape_generator import list_templates

TEMPLATE_KEYS = {ord(str((i + 1) % 10)): name for i, name in enumerate(list_templates()[:10])}


def draw_hud(frame: np.ndarray, session: ParticleSession, fps: float) -> None:
    lines = [
        f"FPS: {fps:.1f}",
        f"Template: {session.template.value}",
        f"Gesture: {session.gesture.value}",
        f"Hands: {session.signals.hand_mode.value}",
        f"Lock: {'ON' if session.lock_on_exit else 'OFF'}",
    ]
    for i, text in enumerate(lines):
        cv2.putText(frame, text, (15, 30 + i * 24), cv2.FONT_HERSHEY_SIMPLEX, 0.6,
                    (200, 200, 200), 1, cv2.LINE_AA)


def draw_camera_inset(frame: np.ndarray, camera_frame: np.ndarray) -> None:
    h, w = frame.shape[:2]
    inset_w = w // 5
    inset_h = int(camera_frame.shape[0] * inset_w / camera_frame.shape[1])
    small = cv2.resize(camera_frame, (inset_w, inset_h))
    frame[h - inset_h - 10:h - 10, w - inset_w - 10:w - 10] = small


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    cap = cv2.VideoCapture(config.CAMERA_ID)
    if not cap.isOpened():
        print(f"错误：无法打开摄像头 {config.CAMERA_ID}")
        print("请检查：")
        print("1. 摄像头是否已连接")
        print("2. 摄像头是否被其他程序占用")
        print("3. config.py 中的 CAMERA_ID 是否正确")
        return

    cap.set(cv2.CAP_PROP_FRAME_WIDTH, config.CAMERA_WIDTH)
    cap.set(cv2.CAP_PROP_FRAME_HEIGHT, config.CAMERA_HEIGHT)

    cv2.namedWindow(config.WINDOW_NAME, cv2.WINDOW_NORMAL | cv2.WINDOW_KEEPRATIO)
    cv2.resizeWindow(config.WINDOW_NAME, config.PREVIEW_WIDTH, config.PREVIEW_HEIGHT)

    print(f"正在生成 {config.PARTICLE_COUNT} 个粒子（{config.DEFAULT_TEMPLATE}）...")
    session = ParticleSession(config.DEFAULT_TEMPLATE, config.PARTICLE_COUNT)
    renderer = OpenCVPreviewRenderer()

    detector = HandDetector()
    pose_source = PoseSource(session.slot, async_mode=config.ASYNC_INFERENCE, detector=detector)
    pose_source.start()

    tint_index = 0
    show_camera = True
    fps = 0.0
    frame_count = 0
    last_time = time.time()

    try:
        while True:
            ret, camera_frame = cap.read()
            if not ret:
                print("警告：无法读取摄像头帧")
                break

            camera_frame = cv2.flip(camera_frame, 1)
            pose_source.feed(camera_frame)

            snapshot = session.tick()
            frame = renderer.render(snapshot, renderer.new_frame())

            if show_camera:
                _, observation = session.slot.latest()
                if observation is not None:
                    for hand in observation.hands:
                        detector.draw_hand(camera_frame, hand)
                draw_camera_inset(frame, camera_frame)

            frame_count += 1
            now = time.time()
            if now - last_time >= 1.0:
                fps = frame_count / (now - last_time)
                frame_count = 0
                last_time = now
            draw_hud(frame, session, fps)

            cv2.imshow(config.WINDOW_NAME, frame)
            key = cv2.waitKey(1) & 0xFF

            if key in (ord('q'), 27):
                break
            elif key in TEMPLATE_KEYS:
                try:
                    session.set_template(TEMPLATE_KEYS[key])
                    print(f"模板切换: {session.template.value}")
                except UnknownTemplate as exc:
                    print(f"错误：{exc}")
            elif key == ord('c'):
                tint_index = (tint_index + 1) % len(config.TINT_PRESETS)
                session.set_tint(config.TINT_PRESETS[tint_index])
            elif key == ord('l'):
                session.set_lock_on_exit(not session.lock_on_exit)
            elif key == ord('h'):
                show_camera = not show_camera
    finally:
        pose_source.stop()
        cap.release()
        cv2.destroyAllWindows()


if __name__ == "__main__":
    main()
