from .content import Author, Comment, ContentItem, ContentKind, EngagementKind
from .notification import Notification, NotificationChannel, build_notification_document
from .user import UserProfile

__all__ = [
    'Author', 'Comment', 'ContentItem', 'ContentKind', 'EngagementKind',
    'Notification', 'NotificationChannel', 'build_notification_document',
    'UserProfile'
]
