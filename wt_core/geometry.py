"""
Преобразование координат между исходным снимком и областью отображения.

Снимок всегда вписывается в контейнер с сохранением пропорций (без обрезки):
одна ось заполняет контейнер целиком, по другой снимок центрируется
с симметричными пустыми полосами (letterbox сверху/снизу, pillarbox слева/справа).

Все координаты окон хранятся в пространстве исходного снимка, поэтому
разметка переживает изменение размера экрана, перерисовку и экспорт
в полном разрешении.
"""
from typing import NamedTuple

# Порог "идеального совпадения" пропорций. Изменение порога меняет,
# где появляются полосы в 1-2 пикселя.
PERFECT_FIT_TOLERANCE = 0.2


class Point(NamedTuple):
    x: float
    y: float


class Size(NamedTuple):
    width: float
    height: float


class FitRect(NamedTuple):
    """Прямоугольник, который занимает снимок внутри контейнера"""

    x: float
    y: float
    width: float
    height: float
    scale_x: float
    scale_y: float


def validate_image_size(size: Size) -> None:
    """
    Проверить, что у снимка определены пропорции.

    Raises:
        ValueError: нулевая или отрицательная ширина/высота
    """
    if size.width <= 0 or size.height <= 0:
        raise ValueError(f"Недопустимый размер снимка: {size.width}x{size.height}")


def aspect_ratio(size: Size) -> float:
    return size.width / size.height


def _is_perfect_fit(original: Size, displayed: Size, tolerance: float) -> bool:
    return abs(aspect_ratio(original) - aspect_ratio(displayed)) < tolerance


def fit_rect(
    original: Size, displayed: Size, tolerance: float = PERFECT_FIT_TOLERANCE
) -> FitRect:
    """
    Вычислить область снимка внутри контейнера.

    Args:
        original: размер исходного снимка (пиксели)
        displayed: размер контейнера отображения
        tolerance: порог совпадения пропорций

    Returns:
        FitRect со смещением, размером и масштабами по осям
    """
    if displayed.width <= 0 or displayed.height <= 0:
        return FitRect(0.0, 0.0, 0.0, 0.0, 0.0, 0.0)

    if _is_perfect_fit(original, displayed, tolerance):
        return FitRect(
            0.0,
            0.0,
            float(displayed.width),
            float(displayed.height),
            displayed.width / original.width,
            displayed.height / original.height,
        )

    if aspect_ratio(original) > aspect_ratio(displayed):
        # Снимок шире контейнера - полосы сверху и снизу
        scale = displayed.width / original.width
        offset_y = (displayed.height - original.height * scale) / 2
        return FitRect(0.0, offset_y, float(displayed.width), original.height * scale, scale, scale)

    # Снимок уже контейнера - полосы слева и справа
    scale = displayed.height / original.height
    offset_x = (displayed.width - original.width * scale) / 2
    return FitRect(offset_x, 0.0, original.width * scale, float(displayed.height), scale, scale)


def to_display(
    point: Point,
    original: Size,
    displayed: Size,
    tolerance: float = PERFECT_FIT_TOLERANCE,
) -> Point:
    """
    Перевести точку из пикселей исходного снимка в координаты контейнера.

    Точки за пределами снимка (в т.ч. отрицательные) не ограничиваются.
    При нулевом размере контейнера возвращается (0, 0).
    """
    rect = fit_rect(original, displayed, tolerance)
    if rect.scale_x == 0 or rect.scale_y == 0:
        return Point(0.0, 0.0)
    return Point(point.x * rect.scale_x + rect.x, point.y * rect.scale_y + rect.y)


def to_original(
    point: Point,
    original: Size,
    displayed: Size,
    tolerance: float = PERFECT_FIT_TOLERANCE,
) -> Point:
    """
    Обратное преобразование: координаты контейнера -> пиксели исходного снимка.

    Ветка (идеальное совпадение / letterbox / pillarbox) выбирается так же,
    как в to_display, поэтому прямое и обратное преобразования согласованы.
    """
    rect = fit_rect(original, displayed, tolerance)
    if rect.scale_x == 0 or rect.scale_y == 0:
        return Point(0.0, 0.0)
    return Point((point.x - rect.x) / rect.scale_x, (point.y - rect.y) / rect.scale_y)


def clamp_point(point: Point, size: Size) -> Point:
    """Ограничить точку прямоугольником [0, width] x [0, height]"""
    return Point(
        min(max(point.x, 0.0), float(size.width)),
        min(max(point.y, 0.0), float(size.height)),
    )


def is_inside(point: Point, size: Size) -> bool:
    return 0 <= point.x <= size.width and 0 <= point.y <= size.height
