"""
Модуль погодного клиента.

Компоненты:
- client.py - WeatherClient
- models.py - Coordinate, WeatherConditions
- exceptions.py - WeatherUnavailable, AddressNotFound
- http_pool.py - Connection pooling
"""

from app.weather_client.client import WeatherClient
from app.weather_client.exceptions import AddressNotFound, WeatherUnavailable
from app.weather_client.models import Coordinate, WeatherConditions

__all__ = [
    "WeatherClient",
    "Coordinate",
    "WeatherConditions",
    "WeatherUnavailable",
    "AddressNotFound",
]
