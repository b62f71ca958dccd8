"""HTTP-клиент геокодера и погодного сервиса"""
from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from app.weather_client.exceptions import AddressNotFound, WeatherUnavailable
from app.weather_client.http_pool import get_weather_http_client
from app.weather_client.models import Coordinate, WeatherConditions
from wt_core.models import Job

logger = logging.getLogger(__name__)

_NETWORK_ERRORS = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.ReadTimeout,
    httpx.TimeoutException,
    httpx.NetworkError,
)


@dataclass
class WeatherClient:
    """
    Погода на объекте по адресу: геокодирование + текущие условия.

    Использование:
        client = WeatherClient(api_key="...")
        conditions = client.fetch_for_address("12 Main St, Austin, TX 78701")
    """

    api_key: str = field(default_factory=lambda: os.getenv("WEATHER_API_KEY", ""))
    weather_base_url: str = field(
        default_factory=lambda: os.getenv("WEATHER_BASE_URL", "https://api.weatherapi.com/v1")
    )
    geocoder_base_url: str = field(
        default_factory=lambda: os.getenv("GEOCODER_BASE_URL", "https://nominatim.openstreetmap.org")
    )
    timeout: float = 10.0
    max_retries: int = 3
    retry_delay: float = 1.0
    http_client: Optional[httpx.Client] = None

    def __post_init__(self):
        logger.debug(
            f"WeatherClient initialized: weather={self.weather_base_url}, "
            f"geocoder={self.geocoder_base_url}, api_key={'***' if self.api_key else 'None'}"
        )

    def _client(self) -> httpx.Client:
        return self.http_client or get_weather_http_client(self.timeout)

    def _get_json(self, url: str, params: dict) -> Any:
        """GET с ретраями и exponential backoff. Любой сбой -> WeatherUnavailable."""
        client = self._client()
        for attempt in range(self.max_retries):
            try:
                resp = client.get(url, params=params, timeout=self.timeout)
            except _NETWORK_ERRORS as e:
                if attempt < self.max_retries - 1:
                    delay = self.retry_delay * 2**attempt
                    logger.warning(f"Сетевая ошибка: {e}, ретрай через {delay}с...")
                    time.sleep(delay)
                    continue
                logger.error(f"Все попытки подключения исчерпаны: {e}")
                raise WeatherUnavailable(f"Погодный сервис недоступен: {e}") from e

            # Для 5xx - ретраим
            if resp.status_code >= 500 and attempt < self.max_retries - 1:
                delay = self.retry_delay * 2**attempt
                logger.warning(f"Сервис вернул {resp.status_code}, ретрай через {delay}с...")
                time.sleep(delay)
                continue

            if resp.status_code in (401, 403):
                raise WeatherUnavailable("Неверный ключ погодного сервиса (WEATHER_API_KEY)")
            if resp.status_code >= 400:
                raise WeatherUnavailable(f"Погодный сервис вернул ошибку: {resp.status_code}")

            try:
                return resp.json()
            except ValueError as e:
                raise WeatherUnavailable("Погодный сервис вернул некорректный JSON") from e

        raise WeatherUnavailable("Погодный сервис недоступен")

    def geocode(self, address: str) -> Coordinate:
        """
        Адрес -> координаты.

        Raises:
            AddressNotFound: геокодер не вернул ни одной точки
            WeatherUnavailable: ошибка сети или сервиса
        """
        if not address.strip():
            raise AddressNotFound("Пустой адрес")

        data = self._get_json(
            f"{self.geocoder_base_url.rstrip('/')}/search",
            {"q": address, "format": "json", "limit": 1},
        )
        if not isinstance(data, list) or not data:
            raise AddressNotFound(f"Адрес не найден: {address}")
        try:
            coordinate = Coordinate(lat=float(data[0]["lat"]), lon=float(data[0]["lon"]))
        except (KeyError, TypeError, ValueError) as e:
            raise WeatherUnavailable("Геокодер вернул ответ неизвестного формата") from e

        logger.debug(f"Геокодирование: {address} -> {coordinate.as_query()}")
        return coordinate

    def current_conditions(self, coordinate: Coordinate) -> WeatherConditions:
        """
        Текущая погода в точке.

        Raises:
            WeatherUnavailable: ошибка сети, сервиса или формата ответа
        """
        data = self._get_json(
            f"{self.weather_base_url.rstrip('/')}/current.json",
            {"key": self.api_key, "q": coordinate.as_query()},
        )
        try:
            return WeatherConditions.from_response(data)
        except (KeyError, TypeError, ValueError) as e:
            raise WeatherUnavailable("Погодный сервис вернул ответ неизвестного формата") from e

    def fetch_for_address(self, address: str) -> WeatherConditions:
        return self.current_conditions(self.geocode(address))

    def capture_for_job(self, job: Job) -> WeatherConditions:
        """Получить погоду по адресу задания и записать её в задание"""
        conditions = self.fetch_for_address(job.full_address())
        job.apply_conditions(
            temperature=conditions.temp_f,
            humidity=conditions.humidity,
            wind_speed=conditions.wind_mph,
            weather_condition=conditions.condition_text,
        )
        logger.info(
            f"Погода для {job.job_id}: {conditions.condition_text}, "
            f"{conditions.temp_f:.0f}°F, влажность {conditions.humidity:.0f}%"
        )
        return conditions
