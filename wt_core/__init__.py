"""
WindowTest Core - Базовая библиотека

Обмен пакетами заданий и результатов полевых испытаний окон (без UI).

Модули:
- models: Модели данных (Job, Window, Photo)
- geometry: Пересчёт координат экран <-> исходный снимок
- manifest_io: Чтение и запись jobs.json / job.json
- package_locator: Поиск корня пакета внутри распакованного архива
- entity_store: Транзакционное хранилище сущностей
- image_storage: Локальное хранилище обзорных снимков и фото
- archive: Распаковка и упаковка ZIP
- overlay: Отрисовка меток окон на снимке (Pillow)
- windows_csv, report_txt: Табличная и текстовая проекции результатов
- job_import, job_export: Конвейеры импорта и экспорта
"""

from _metadata import __product__, __version__

__all__ = ["__product__", "__version__"]
