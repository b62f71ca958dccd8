"""
Точка входа приложения.

    windowtest import intake.zip
    windowtest jobs
    windowtest add-window E2025-05091 --x 200 --y 150 --display-width 390 --display-height 260
    windowtest weather E2025-05091
    windowtest export E2025-05091
    windowtest delete E2025-05091
"""
from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from PIL import Image

from _metadata import get_version_info
from app.config import Settings, load_settings
from app.logging_manager import get_logging_manager
from app.weather_client import WeatherClient, WeatherUnavailable
from wt_core.entity_store import EntityStore
from wt_core.errors import JobNotFound, MissingAsset, PackageError
from wt_core.geometry import Point, Size, clamp_point, to_original, validate_image_size
from wt_core.job_export import ExportPipeline
from wt_core.job_import import ImportProgress, JobImportPipeline
from wt_core.models import Job, TestResult, Window, next_window_number

logger = logging.getLogger(__name__)


class Context:
    """Общие зависимости подкоманд"""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.store = EntityStore(settings.store_path)
        self.image_storage = settings.image_storage()

    def require_job(self, job_id: str) -> Job:
        job = self.store.find_job(job_id)
        if job is None:
            raise JobNotFound(f"Задание не найдено: {job_id}")
        return job


def _print_progress(event: ImportProgress) -> None:
    suffix = f" {event.message}" if event.message else ""
    print(f"[{event.fraction * 100:5.1f}%] {event.stage.value}{suffix}", file=sys.stderr)


def cmd_import(ctx: Context, args: argparse.Namespace) -> int:
    pipeline = JobImportPipeline(
        ctx.store,
        ctx.image_storage,
        on_progress=None if args.quiet else _print_progress,
    )
    result = pipeline.run(args.source)
    for job in result.imported_jobs:
        print(f"{job.job_id}\t{job.client_name}\t{job.full_address()}")
    for warning in result.warnings:
        print(f"warning: {warning}", file=sys.stderr)
    return 0


def cmd_jobs(ctx: Context, args: argparse.Namespace) -> int:
    for job in ctx.store.query(Job):
        windows = ctx.store.windows_for(job)
        print(f"{job.job_id}\t{job.status.value}\t{len(windows)} windows\t{job.full_address()}")
    return 0


def _original_size(ctx: Context, job: Job) -> Size:
    if not ctx.image_storage.has_overhead(job.overhead_image_path):
        raise MissingAsset(f"У задания {job.job_id} нет обзорного снимка", job.overhead_image_path)
    with Image.open(ctx.image_storage.overhead_path(job.overhead_image_path)) as image:
        size = Size(*image.size)
    validate_image_size(size)
    return size


def cmd_add_window(ctx: Context, args: argparse.Namespace) -> int:
    job = ctx.require_job(args.job_id)
    point = Point(args.x, args.y)

    if args.display_width is not None and args.display_height is not None:
        original = _original_size(ctx, job)
        point = to_original(point, original, Size(args.display_width, args.display_height))
        if args.clamp:
            point = clamp_point(point, original)
    elif args.clamp:
        point = clamp_point(point, _original_size(ctx, job))

    with ctx.store.transaction():
        window = ctx.store.create(
            Window,
            job_key=job.key,
            window_number=args.number or next_window_number(ctx.store.windows_for(job)),
            x_position=point.x,
            y_position=point.y,
            window_type=args.type,
            test_result=TestResult.from_value(args.result),
        )
    print(f"{window.window_number}\t{window.x_position:.1f}\t{window.y_position:.1f}")
    return 0


def cmd_weather(ctx: Context, args: argparse.Namespace) -> int:
    job = ctx.require_job(args.job_id)
    settings = ctx.settings
    client = WeatherClient(
        api_key=settings.weather_api_key,
        weather_base_url=settings.weather_base_url,
        geocoder_base_url=settings.geocoder_base_url,
        timeout=settings.weather_timeout,
    )
    conditions = client.capture_for_job(job)
    with ctx.store.transaction():
        ctx.store.add(job)
    print(
        f"{conditions.condition_text}\t{conditions.temp_f:.0f}°F\t"
        f"{conditions.humidity:.0f}%\t{conditions.wind_mph:.0f} mph"
    )
    return 0


def cmd_export(ctx: Context, args: argparse.Namespace) -> int:
    pipeline = ExportPipeline(ctx.store, ctx.image_storage, args.output or ctx.settings.exports_dir)
    result = pipeline.run(args.job_id)
    for warning in result.warnings:
        print(f"warning: {warning}", file=sys.stderr)
    print(result.archive_path)
    return 0


def cmd_delete(ctx: Context, args: argparse.Namespace) -> int:
    job = ctx.require_job(args.job_id)
    with ctx.store.transaction():
        ctx.store.delete(job)
    if job.overhead_image_path:
        ctx.image_storage.remove_overhead(job.overhead_image_path)
    logger.info(f"Задание удалено: {job.job_id}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="windowtest",
        description="Импорт пакетов заданий, разметка окон и экспорт результатов",
    )
    parser.add_argument("--version", action="version", version=get_version_info())
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("import", help="Импортировать пакет заданий (ZIP, папка или jobs.json)")
    p.add_argument("source")
    p.add_argument("--quiet", action="store_true", help="Не печатать прогресс")
    p.set_defaults(handler=cmd_import)

    p = sub.add_parser("jobs", help="Список заданий")
    p.set_defaults(handler=cmd_jobs)

    p = sub.add_parser("add-window", help="Добавить окно на обзорный снимок")
    p.add_argument("job_id")
    p.add_argument("--x", type=float, required=True)
    p.add_argument("--y", type=float, required=True)
    p.add_argument("--display-width", type=float, help="Ширина области отображения (координаты экрана)")
    p.add_argument("--display-height", type=float, help="Высота области отображения")
    p.add_argument("--clamp", action="store_true", help="Ограничить точку границами снимка")
    p.add_argument("--number", help="Метка окна (по умолчанию следующая W<n>)")
    p.add_argument("--type", help="Тип окна")
    p.add_argument("--result", choices=["Pass", "Fail"], help="Результат испытания")
    p.set_defaults(handler=cmd_add_window)

    p = sub.add_parser("weather", help="Зафиксировать погоду на объекте")
    p.add_argument("job_id")
    p.set_defaults(handler=cmd_weather)

    p = sub.add_parser("export", help="Экспортировать пакет результатов")
    p.add_argument("job_id")
    p.add_argument("--output", help="Папка для архива (по умолчанию WT_EXPORTS_DIR)")
    p.set_defaults(handler=cmd_export)

    p = sub.add_parser("delete", help="Удалить задание с окнами и фото")
    p.add_argument("job_id")
    p.set_defaults(handler=cmd_delete)

    return parser


def main(argv: Optional[List[str]] = None, settings: Optional[Settings] = None) -> int:
    """
    Главная функция - точка входа в приложение
    """
    args = build_parser().parse_args(argv)
    settings = settings or load_settings()

    get_logging_manager().setup(
        log_dir=settings.logs_dir,
        log_level=settings.log_level_value,
        log_format=settings.log_format,
    )

    try:
        return args.handler(Context(settings), args)
    except (PackageError, WeatherUnavailable) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        logger.error(f"❌ {e}")
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
