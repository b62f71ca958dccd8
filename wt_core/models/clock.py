"""
Генерация идентификаторов и работа с метками времени.

Все метки времени внутри системы - aware datetime в UTC.
На входе принимаются ISO-8601 строки и числовые epoch-секунды,
на выходе всегда ISO-8601 вида YYYY-MM-DDTHH:MM:SSZ.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional, Union

TimestampValue = Union[str, int, float, datetime, None]


def utc_now() -> datetime:
    """Текущее время в UTC без микросекунд"""
    return datetime.now(timezone.utc).replace(microsecond=0)


def generate_key() -> str:
    """Уникальный ключ сущности в хранилище"""
    return uuid.uuid4().hex


def generate_window_id() -> str:
    """Уникальный идентификатор окна (UUID в верхнем регистре)"""
    return str(uuid.uuid4()).upper()


def parse_timestamp(value: TimestampValue) -> Optional[datetime]:
    """
    Разобрать метку времени в любом из поддерживаемых представлений.

    Args:
        value: ISO-8601 строка, epoch-секунды (int/float или числовая строка),
            datetime или None

    Returns:
        aware datetime в UTC или None для пустого значения

    Raises:
        ValueError: значение не распознано как метка времени
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"Недопустимая метка времени: {value!r}")
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(float(value), tz=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return datetime.fromtimestamp(float(text), tz=timezone.utc)
        except ValueError:
            pass
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    raise ValueError(f"Недопустимая метка времени: {value!r}")


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Каноническая ISO-8601 строка в UTC (секундная точность)"""
    if value is None:
        return None
    value = parse_timestamp(value)
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")
