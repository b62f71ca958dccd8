"""Отрисовка меток окон на обзорном снимке"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, Tuple, Union

from PIL import Image, ImageDraw, ImageFont

from wt_core.models import TestResult, Window

logger = logging.getLogger(__name__)

MARKER_RADIUS = 10
LABEL_FONT_SIZE = 12
LABEL_COLOR = (255, 255, 255)

MARKER_COLORS: Dict[TestResult, Tuple[int, int, int]] = {
    TestResult.PASS: (0, 200, 0),
    TestResult.FAIL: (220, 0, 0),
    TestResult.UNSET: (0, 90, 255),
}

_BOLD_FONT_CANDIDATES = ("DejaVuSans-Bold.ttf", "Arial Bold.ttf", "arialbd.ttf")


def marker_color(window: Window) -> Tuple[int, int, int]:
    return MARKER_COLORS.get(window.test_result, MARKER_COLORS[TestResult.UNSET])


def load_label_font(size: int = LABEL_FONT_SIZE) -> ImageFont.ImageFont:
    """Жирный шрифт для номеров окон (fallback - встроенный шрифт Pillow)"""
    for name in _BOLD_FONT_CANDIDATES:
        try:
            return ImageFont.truetype(name, size)
        except OSError:
            continue
    logger.debug("Жирный TrueType шрифт не найден, используется встроенный")
    return ImageFont.load_default(size=size)


def draw_window_markers(
    image: Image.Image,
    windows: Iterable[Window],
    radius: int = MARKER_RADIUS,
) -> Image.Image:
    """
    Нарисовать метки окон на копии снимка.

    Координаты окон уже в пикселях исходного снимка - пересчёт не нужен.
    Метки за пределами снимка рисуются и обрезаются холстом.
    """
    canvas = image.convert("RGB")
    draw = ImageDraw.Draw(canvas)
    font = load_label_font()

    count = 0
    for window in windows:
        x, y = window.x_position, window.y_position
        draw.ellipse((x - radius, y - radius, x + radius, y + radius), fill=marker_color(window))
        label = window.window_number or ""
        if label:
            left, top, right, bottom = draw.textbbox((0, 0), label, font=font)
            text_x = x - (right - left) / 2 - left
            text_y = y - (bottom - top) / 2 - top
            draw.text((text_x, text_y), label, fill=LABEL_COLOR, font=font)
        count += 1

    logger.debug(f"Нарисовано меток: {count} на снимке {canvas.width}x{canvas.height}")
    return canvas


def render_overhead_with_dots(
    image_path: Union[str, Path],
    windows: Iterable[Window],
    output_path: Union[str, Path],
) -> Path:
    """
    Загрузить снимок в исходном разрешении, нарисовать метки и сохранить PNG.

    Returns:
        Путь к сохранённому PNG
    """
    output_path = Path(output_path)
    with Image.open(image_path) as image:
        image.load()
        annotated = draw_window_markers(image, windows)
    annotated.save(output_path, format="PNG")
    logger.info(f"Снимок с метками сохранён: {output_path.name} ({annotated.width}x{annotated.height})")
    return output_path
