"""
Medicine plan model - the only persisted entity of the reminder subsystem
"""
from sqlalchemy import Column, Integer, String, Boolean, Date, Index, text

from medreminder.db.base import Base


class MedicinePlan(Base):
    """A medication course with a daily reminder and a remaining-day counter"""
    __tablename__ = "medicine_plans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    dosage = Column(String, nullable=False)
    duration = Column(Integer, nullable=False)  # remaining days, never below 0
    food_timing = Column("foodTiming", String, nullable=False)  # before, after, during
    notification_time = Column("notificationTime", String, nullable=False)  # HH:MM, 24-hour
    notifications_enabled = Column(
        "notificationsEnabled", Boolean, nullable=False, default=True, server_default=text("1")
    )
    # Last local calendar day this plan was rolled over
    last_notification_date = Column("lastNotificationDate", Date, nullable=True)

    __table_args__ = (
        Index("ix_medicine_plans_active", "notificationsEnabled", "duration"),
        {"sqlite_autoincrement": True},
    )

    def __repr__(self) -> str:
        return (
            f"<MedicinePlan id={self.id} name={self.name!r} duration={self.duration} "
            f"enabled={self.notifications_enabled} last={self.last_notification_date}>"
        )
