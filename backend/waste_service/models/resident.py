from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from waste_service.db.base import Base
from waste_service.models.mixins import TimestampMixin


class Resident(Base, TimestampMixin):
    __tablename__ = "residents"

    # Subject id issued by the external auth provider
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(255))
    purok: Mapped[str | None] = mapped_column(String(64), index=True)
    mobile: Mapped[str | None] = mapped_column(String(32))
