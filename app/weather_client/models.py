"""Модели данных погодного клиента"""
from dataclasses import dataclass


@dataclass(frozen=True)
class Coordinate:
    """Географическая точка"""

    lat: float
    lon: float

    def as_query(self) -> str:
        return f"{self.lat},{self.lon}"


@dataclass(frozen=True)
class WeatherConditions:
    """Текущая погода на объекте"""

    temp_f: float
    humidity: float
    wind_mph: float
    condition_text: str

    @classmethod
    def from_response(cls, data: dict) -> "WeatherConditions":
        """Разобрать ответ вида {"current": {"temp_f", "humidity", "wind_mph", "condition": {"text"}}}"""
        current = data["current"]
        return cls(
            temp_f=float(current["temp_f"]),
            humidity=float(current["humidity"]),
            wind_mph=float(current["wind_mph"]),
            condition_text=str(current["condition"]["text"]),
        )
