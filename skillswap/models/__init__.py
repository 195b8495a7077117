from skillswap.models.base import Base
from skillswap.models.feedback import Feedback
from skillswap.models.notification import Notification, NotificationType
from skillswap.models.swap import Swap, SwapStatus
from skillswap.models.user import User

__all__ = ["Base", "User", "Swap", "SwapStatus", "Feedback", "Notification", "NotificationType"]
