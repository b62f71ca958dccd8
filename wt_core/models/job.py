"""
Модель задания - физического объекта обследования.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from wt_core.models.clock import (
    format_timestamp,
    generate_key,
    parse_timestamp,
    utc_now,
)
from wt_core.models.enums import JobStatus


@dataclass
class Job:
    """
    Задание на обследование объекта

    Attributes:
        key: внутренний ключ записи в хранилище
        job_id: внешний идентификатор задания (уникален в пределах пакета)
        client_name: имя клиента
        address_line1, city, state, zip: адрес объекта
        notes: заметки диспетчера
        status: статус задания
        inspector_name: имя инспектора
        inspection_date: дата обследования
        temperature, weather_condition, humidity, wind_speed: погодный снимок
            (None = не заполнено)
        overhead_image_path: имя файла обзорного снимка в локальном хранилище
        overhead_image_source_name: источник снимка
        overhead_image_source_url: URL источника снимка
        overhead_image_fetched_at: когда снимок был получен
        scale_pixels_per_foot: калибровка масштаба снимка
    """

    job_id: str
    client_name: str = ""
    address_line1: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    notes: Optional[str] = None
    status: JobStatus = JobStatus.READY
    inspector_name: Optional[str] = None
    inspection_date: Optional[datetime] = None
    temperature: Optional[float] = None
    weather_condition: Optional[str] = None
    humidity: Optional[float] = None
    wind_speed: Optional[float] = None
    overhead_image_path: Optional[str] = None
    overhead_image_source_name: Optional[str] = None
    overhead_image_source_url: Optional[str] = None
    overhead_image_fetched_at: Optional[datetime] = None
    scale_pixels_per_foot: Optional[float] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    key: str = field(default_factory=generate_key)

    @classmethod
    def create(
        cls,
        job_id: str,
        client_name: str = "",
        address_line1: str = "",
        city: str = "",
        state: str = "",
        zip: str = "",
        notes: Optional[str] = None,
    ) -> "Job":
        """Создать задание вручную (без пакета)"""
        return cls(
            job_id=job_id.strip(),
            client_name=client_name,
            address_line1=address_line1,
            city=city,
            state=state,
            zip=zip,
            notes=notes,
        )

    def full_address(self) -> str:
        """Адрес одной строкой (для геокодирования и отчёта)"""
        tail = " ".join(p for p in (self.state, self.zip) if p)
        parts = [p for p in (self.address_line1, self.city, tail) if p]
        return ", ".join(parts)

    def touch(self) -> None:
        """Отметить изменение записи"""
        self.updated_at = utc_now()

    def apply_conditions(
        self,
        temperature: float,
        humidity: float,
        wind_speed: float,
        weather_condition: str,
    ) -> None:
        """Зафиксировать погодный снимок на объекте"""
        self.temperature = temperature
        self.humidity = humidity
        self.wind_speed = wind_speed
        self.weather_condition = weather_condition
        self.touch()

    @property
    def has_environment(self) -> bool:
        return self.temperature is not None or bool(self.weather_condition)

    def to_dict(self) -> dict:
        """Сериализация в словарь для JSON (снимок хранилища)"""
        return {
            "key": self.key,
            "job_id": self.job_id,
            "client_name": self.client_name,
            "address_line1": self.address_line1,
            "city": self.city,
            "state": self.state,
            "zip": self.zip,
            "notes": self.notes,
            "status": self.status.value,
            "inspector_name": self.inspector_name,
            "inspection_date": format_timestamp(self.inspection_date),
            "temperature": self.temperature,
            "weather_condition": self.weather_condition,
            "humidity": self.humidity,
            "wind_speed": self.wind_speed,
            "overhead_image_path": self.overhead_image_path,
            "overhead_image_source_name": self.overhead_image_source_name,
            "overhead_image_source_url": self.overhead_image_source_url,
            "overhead_image_fetched_at": format_timestamp(self.overhead_image_fetched_at),
            "scale_pixels_per_foot": self.scale_pixels_per_foot,
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Job":
        """Десериализация из словаря снимка хранилища"""
        return cls(
            key=data["key"],
            job_id=data["job_id"],
            client_name=data.get("client_name", ""),
            address_line1=data.get("address_line1", ""),
            city=data.get("city", ""),
            state=data.get("state", ""),
            zip=data.get("zip", ""),
            notes=data.get("notes"),
            status=JobStatus.from_value(data.get("status")),
            inspector_name=data.get("inspector_name"),
            inspection_date=parse_timestamp(data.get("inspection_date")),
            temperature=data.get("temperature"),
            weather_condition=data.get("weather_condition"),
            humidity=data.get("humidity"),
            wind_speed=data.get("wind_speed"),
            overhead_image_path=data.get("overhead_image_path"),
            overhead_image_source_name=data.get("overhead_image_source_name"),
            overhead_image_source_url=data.get("overhead_image_source_url"),
            overhead_image_fetched_at=parse_timestamp(data.get("overhead_image_fetched_at")),
            scale_pixels_per_foot=data.get("scale_pixels_per_foot"),
            created_at=parse_timestamp(data.get("created_at")) or utc_now(),
            updated_at=parse_timestamp(data.get("updated_at")) or utc_now(),
        )
