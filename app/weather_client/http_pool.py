"""HTTP connection pooling для погодного клиента"""
from __future__ import annotations

import logging

import httpx
from httpx import Limits

logger = logging.getLogger(__name__)

# Глобальный пул соединений (по одному клиенту на таймаут)
_weather_http_client: httpx.Client | None = None
_weather_timeout: float | None = None


def get_weather_http_client(timeout: float = 10.0) -> httpx.Client:
    """Получить или создать HTTP клиент с connection pooling"""
    global _weather_http_client, _weather_timeout
    if _weather_http_client is None or _weather_timeout != timeout:
        close_weather_http_client()
        _weather_http_client = httpx.Client(
            limits=Limits(max_connections=5, max_keepalive_connections=2),
            timeout=timeout,
            follow_redirects=True,
        )
        _weather_timeout = timeout
        logger.debug(f"Создан HTTP клиент погодного сервиса (timeout={timeout})")
    return _weather_http_client


def close_weather_http_client() -> None:
    global _weather_http_client, _weather_timeout
    if _weather_http_client is not None:
        _weather_http_client.close()
    _weather_http_client = None
    _weather_timeout = None
