"""Исключения погодного клиента"""


class WeatherUnavailable(Exception):
    """Погодные данные недоступны (сеть, ответ сервиса, адрес не найден)"""

    pass


class AddressNotFound(WeatherUnavailable):
    """Геокодер не нашёл адрес"""

    pass
