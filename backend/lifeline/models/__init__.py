from lifeline.models.patient import Patient
from lifeline.models.contact import EmergencyContact
from lifeline.models.access_grant import AccessGrant
from lifeline.models.panic_alert import PanicAlert, PanicStatus
from lifeline.models.facility import Facility, AttentionLevel
from lifeline.models.directive import AdvanceDirective
from lifeline.models.audit_event import AuditEvent
from lifeline.models.notification_log import NotificationLog

__all__ = ["Patient", "EmergencyContact", "AccessGrant", "PanicAlert", "PanicStatus", "Facility",
           "AttentionLevel", "AdvanceDirective", "AuditEvent", "NotificationLog"]
