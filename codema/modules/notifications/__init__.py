from codema.modules.notifications.models import (
    Notification,
    NotificationKind,
    NotificationPreference,
)
from codema.modules.notifications.service import NotificationService

__all__ = ["Notification", "NotificationKind", "NotificationPreference", "NotificationService"]
