from __future__ import annotations
import logging
from typing import TYPE_CHECKING, Tuple

import cv2
import numpy as np

from ..domain.styles import parse_length

if TYPE_CHECKING:
    from ..engine.instance import FretboardInstance

log = logging.getLogger(__name__)

Color = Tuple[int, int, int]


def hex_to_bgr(value, fallback: Color = (128, 128, 128)) -> Color:
    """'#rrggbb' / '#rgb' -> BGR. 그라디언트/이미지 값은 fallback"""
    s = str(value or "").strip()
    if not s.startswith("#"):
        return fallback
    s = s[1:]
    if len(s) == 3:
        s = "".join(c * 2 for c in s)
    if len(s) != 6:
        return fallback
    try:
        r, g, b = int(s[0:2], 16), int(s[2:4], 16), int(s[4:6], 16)
    except ValueError:
        return fallback
    return (b, g, r)


def _fill_rect_alpha(img, p0, p1, color: Color, alpha: float = 1.0) -> None:
    if alpha >= 1.0:
        cv2.rectangle(img, p0, p1, color, -1)
        return
    overlay = img.copy()
    cv2.rectangle(overlay, p0, p1, color, -1)
    cv2.addWeighted(overlay, alpha, img, 1 - alpha, 0, dst=img)


def _put_center(img, text: str, center, color: Color, scale: float = 0.45, thick: int = 1) -> None:
    if not text:
        return
    (tw, th), _ = cv2.getTextSize(text, cv2.FONT_HERSHEY_SIMPLEX, scale, thick)
    x = int(center[0] - tw / 2)
    y = int(center[1] + th / 2)
    cv2.putText(img, text, (x, y), cv2.FONT_HERSHEY_SIMPLEX, scale, color, thick, cv2.LINE_AA)


def render_diagram(instance: "FretboardInstance", width: int = 320, height: int = 480):
    """
    다이어그램 상태를 BGR 이미지로.
    - 행 높이: GeometryEngine 이 계산한 값을 캔버스 높이에 맞춰 스케일
    - 열: 1번줄이 왼쪽
    """
    width, height = int(width), int(height)
    tid = instance.target_id
    styles = instance.styles
    a, b = instance.store.group_a, instance.store.group_b
    diagram = instance.diagram

    img = np.zeros((height, width, 3), dtype=np.uint8)
    img[:] = hex_to_bgr(styles.get(tid, "--main-fret-area-bg-color"), (30, 42, 59))

    header_h = parse_length(styles.get(tid, "--header-height")) or 30.0
    visible = [r for r in diagram.rows if r.visible]
    raw_heights = [r.height if r.height else 0.0 for r in visible]
    total = header_h + sum(raw_heights)
    if total <= 0:
        log.warning("%s: no layout yet; preview is blank", tid)
        return img
    sy = height / total

    n = diagram.num_strings
    margin = width * 0.12
    col_w = (width - 2 * margin) / max(n, 1)
    xs = {s: int(margin + col_w * (s - 1) + col_w / 2) for s in range(1, n + 1)}

    # 1) header: 개방현 음 이름
    label_color = hex_to_bgr(styles.get(tid, "--tuning-label-color"), (230, 230, 230))
    for s, x in xs.items():
        _put_center(img, diagram.open_note(s) or "", (x, header_h * sy / 2), label_color)

    # 2) 행 배경 + 프렛 구분선 + 마커
    y = header_h * sy
    row_y = {}
    fret_color = hex_to_bgr(styles.get(tid, "--fret-divider-color"), (192, 192, 192))
    marker_color = hex_to_bgr(styles.get(tid, "--marker-dot-color"), (214, 234, 240))
    for row, rh in zip(visible, raw_heights):
        fret = diagram.fret_of(row.row_id)
        h = rh * sy
        y0, y1 = int(y), int(y + h)
        if fret == 0:
            _fill_rect_alpha(img, (0, y0), (width - 1, y1),
                             hex_to_bgr(styles.get(tid, "--fingerboard-row-0-color"), (230, 240, 245)))
            cv2.line(img, (int(margin), y1), (int(width - margin), y1),
                     hex_to_bgr(styles.get(tid, "--nut-divider-color"), (214, 234, 240)), 4)
        else:
            cv2.line(img, (int(margin), y1), (int(width - margin), y1), fret_color, 2)
            kind = b.fret_markers.get(fret)
            cy = (y0 + y1) // 2
            if kind == "single":
                cv2.circle(img, (width // 2, cy), 5, marker_color, -1)
            elif kind == "double":
                cv2.circle(img, (int(width * 0.35), cy), 5, marker_color, -1)
                cv2.circle(img, (int(width * 0.65), cy), 5, marker_color, -1)
        row_y[fret] = (y0, y1)
        y += h

    # 3) 바인딩
    if b.binding_display:
        bind = hex_to_bgr(styles.get(tid, "--fretbinding-background"), (204, 224, 232))
        top = int(header_h * sy)
        cv2.line(img, (int(margin / 2), top), (int(margin / 2), height - 1), bind, 3)
        cv2.line(img, (int(width - margin / 2), top), (int(width - margin / 2), height - 1), bind, 3)

    # 4) 줄 (두께 보간, double 은 두 가닥)
    thick = parse_length(styles.get(tid, "--string-thickest-width")) or 4.0
    thin = parse_length(styles.get(tid, "--string-thinnest-width")) or 1.0
    string_color = (200, 200, 200)
    top = int(header_h * sy)
    for s, w in diagram.string_widths(thick, thin).items():
        x = xs[s]
        t = max(1, int(round(w)))
        if a.string_type == "double":
            cv2.line(img, (x - 3, top), (x - 3, height - 1), string_color, t)
            cv2.line(img, (x + 3, top), (x + 3, height - 1), string_color, t)
        else:
            cv2.line(img, (x, top), (x, height - 1), string_color, t)

    # 5) 프렛 번호
    ind_color = hex_to_bgr(styles.get(tid, "--fret-indicator-color"), (230, 230, 230))
    for fret in diagram.fret_indicators(a.show_fret_indicators):
        if fret in row_y:
            y0, y1 = row_y[fret]
            _put_center(img, str(fret), (margin / 3, (y0 + y1) / 2), ind_color)

    # 6) 점 / 뮤트
    dot_r = max(4, int((parse_length(styles.get(tid, "--dot-size")) or 24.0) / 2))
    outer = hex_to_bgr(styles.get(tid, "--dot-outer-circle-color"), (87, 53, 29))
    inner = hex_to_bgr(styles.get(tid, "--dot-inner-circle-color"), (157, 123, 69))
    text_color = hex_to_bgr(styles.get(tid, "--dot-text-color"), (255, 255, 255))
    for row in visible:
        fret = diagram.fret_of(row.row_id)
        if fret not in row_y:
            continue
        y0, y1 = row_y[fret]
        cy = (y0 + y1) // 2
        for cell in row.cells:
            x = xs[cell.string]
            if cell.dot.active:
                cv2.circle(img, (x, cy), dot_r, outer, -1)
                cv2.circle(img, (x, cy), max(2, dot_r - 3), inner, -1)
                _put_center(img, cell.dot.text, (x, cy), text_color, 0.4)
            elif fret == 0 and cell.muted.active:
                d = dot_r // 2
                cv2.line(img, (x - d, cy - d), (x + d, cy + d), (60, 60, 220), 2)
                cv2.line(img, (x - d, cy + d), (x + d, cy - d), (60, 60, 220), 2)
    return img


def save_preview(instance: "FretboardInstance", path: str, width: int = 320, height: int = 480) -> str:
    img = render_diagram(instance, width, height)
    if not cv2.imwrite(str(path), img):
        raise RuntimeError(f"failed to write preview image: {path}")
    log.info("preview written: %s", path)
    return str(path)
