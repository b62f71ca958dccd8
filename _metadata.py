"""
WindowTest - Централизованные метаданные проекта

Этот модуль содержит общую информацию о продукте,
которая используется во всех частях системы.
"""

__product__ = "WindowTest"
__version__ = "0.1"
__description__ = "Обмен пакетами заданий и результатов полевых испытаний окон"
__author__ = "WindowTest Team"
__license__ = "MIT"
__status__ = "Alpha"
__python_requires__ = ">=3.11"

# Детальное описание
__long_description__ = """
WindowTest - связка настольного инструмента подготовки заданий и полевого
приложения инспектора.

Основные возможности:
- Импорт пакетов заданий (jobs.json + обзорные снимки, ZIP или папка)
- Разметка окон на обзорном снимке (координаты исходного изображения)
- Фиксация погодных условий на объекте
- Экспорт пакета результатов (JSON, CSV, снимок с метками, фото, отчёт)
"""

# Версия формата пакета заданий, которую мы выпускаем
INTAKE_FORMAT_VERSION = "1.0"

# Технологический стек
__tech_stack__ = {
    "python": "3.11+",
    "images": "Pillow",
    "http": "httpx",
    "config": "python-dotenv",
}


def get_version_info():
    """Возвращает полную информацию о версии"""
    return f"{__product__} v{__version__} ({__status__})"
