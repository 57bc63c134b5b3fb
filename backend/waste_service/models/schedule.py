import enum
import datetime as dt

from sqlalchemy import JSON, CheckConstraint, Date, Enum, Integer, String, Time
from sqlalchemy.orm import Mapped, mapped_column

from waste_service.db.base import Base
from waste_service.models.mixins import TimestampMixin, enum_values


class ScheduleStatus(str, enum.Enum):
    not_started = "not-started"
    ongoing = "ongoing"
    completed = "completed"


class WasteType(str, enum.Enum):
    recyclable = "Recyclable"
    non_recyclable = "Non-Recyclable"
    toxic = "Toxic"
    general = "General"


class Schedule(Base, TimestampMixin):
    __tablename__ = "schedules"
    __table_args__ = (CheckConstraint("start_time < end_time", name="ck_schedules_time_window"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    purok: Mapped[str] = mapped_column(String(64), index=True)
    plan: Mapped[str] = mapped_column(String(32), default="A")
    day: Mapped[str] = mapped_column(String(16))
    date: Mapped[dt.date] = mapped_column(Date, index=True)
    start_time: Mapped[dt.time] = mapped_column(Time)
    end_time: Mapped[dt.time] = mapped_column(Time)
    waste_type: Mapped[WasteType] = mapped_column(
        Enum(WasteType, name="wastetype", values_callable=enum_values)
    )
    status: Mapped[ScheduleStatus] = mapped_column(
        Enum(ScheduleStatus, name="schedulestatus", values_callable=enum_values),
        default=ScheduleStatus.not_started,
        index=True,
    )
    # Ordered [latitude, longitude] pairs
    route_points: Mapped[list] = mapped_column(JSON, default=list)
    version: Mapped[int] = mapped_column(Integer, default=1)
