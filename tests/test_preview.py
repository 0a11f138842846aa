from pathlib import Path

import cv2
import numpy as np

from fretsync.config import load_init_config
from fretsync.domain.styles import StyleRegistry
from fretsync.engine.registry import FretboardRegistry
from fretsync.render.preview import hex_to_bgr, render_diagram, save_preview

EXAMPLE = Path(__file__).resolve().parent.parent / "config" / "example.yaml"


def _example():
    reg = FretboardRegistry(StyleRegistry())
    return reg.init("fb", load_init_config(str(EXAMPLE)))


def test_hex_to_bgr():
    assert hex_to_bgr("#ff0000") == (0, 0, 255)
    assert hex_to_bgr("#abc") == (0xcc, 0xbb, 0xaa)
    assert hex_to_bgr("linear-gradient(90deg, #000 0%)", (1, 2, 3)) == (1, 2, 3)
    assert hex_to_bgr("#zzzzzz", (1, 2, 3)) == (1, 2, 3)


def test_render_shape_and_content():
    inst = _example()
    img = render_diagram(inst, 200, 300)
    assert img.shape == (300, 200, 3)
    assert img.dtype == np.uint8
    assert len(np.unique(img.reshape(-1, 3), axis=0)) > 2


def test_dots_change_the_image():
    inst = _example()
    before = render_diagram(inst, 200, 300)
    inst.click(4, 2)
    after = render_diagram(inst, 200, 300)
    assert np.any(before != after)


def test_save_preview(tmp_path):
    out = tmp_path / "board.png"
    assert save_preview(_example(), str(out), 160, 240) == str(out)
    img = cv2.imread(str(out))
    assert img is not None and img.shape == (240, 160, 3)
