from waste_service.models.activity import Activity, ActivityCategory
from waste_service.models.education import ContentStatus, EducationalContent
from waste_service.models.notification import Notification
from waste_service.models.report import Feedback, Report, ReportStatus, ReportStatusValue
from waste_service.models.resident import Resident
from waste_service.models.schedule import Schedule, ScheduleStatus, WasteType
from waste_service.models.sms import DeliveryStatus, SmsMessage

__all__ = [
    "Activity",
    "ActivityCategory",
    "ContentStatus",
    "DeliveryStatus",
    "EducationalContent",
    "Feedback",
    "Notification",
    "Report",
    "ReportStatus",
    "ReportStatusValue",
    "Resident",
    "Schedule",
    "ScheduleStatus",
    "SmsMessage",
    "WasteType",
]
