from .engagement_ledger import EngagementLedger
from .feed_aggregator import Feed, FeedAggregator
from .notification_aggregator import ChannelState, NotificationAggregator, NotificationSubscription
from .notification_merger import NotificationMerger
from .notification_service import NotificationService
from .presence_service import PresenceService
from .story_grouper import AuthorSummary, StoryGrouper, StoryGroups

__all__ = [
    'EngagementLedger', 'Feed', 'FeedAggregator',
    'ChannelState', 'NotificationAggregator', 'NotificationSubscription',
    'NotificationMerger', 'NotificationService', 'PresenceService',
    'AuthorSummary', 'StoryGrouper', 'StoryGroups'
]
