"""
WindowTest - клиентская часть

Конфигурация, логирование, погодный клиент и CLI поверх wt_core.

Основные возможности:
- Импорт пакета заданий (ZIP или папка)
- Разметка окон по координатам экрана
- Фиксация погоды на объекте
- Экспорт пакета результатов
"""

from _metadata import __description__, __product__, __version__
