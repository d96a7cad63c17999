from app.business.scheduling.models import CalendarEvent

__all__ = ["CalendarEvent"]
