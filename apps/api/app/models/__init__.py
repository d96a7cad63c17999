from app.models.audit import AuditLog
from app.crm.models import Client, ClientUser, Lead
from app.business.delivery.models import (
	ClientService,
	MainPackage,
	ServiceDeliverable,
	ServiceReport,
	WorkActivityLog,
)
from app.business.finance.models import ClientPayment, Invoice, Transaction
from app.business.scheduling.models import CalendarEvent

__all__ = [
	"AuditLog",
	"Lead",
	"Client",
	"ClientUser",
	"MainPackage",
	"ClientService",
	"ServiceDeliverable",
	"WorkActivityLog",
	"ServiceReport",
	"ClientPayment",
	"Transaction",
	"Invoice",
	"CalendarEvent",
]
