from .store import Store
from .api_key import ApiKey
from .activity_log import ActivityLog
from .webhook import Webhook

__all__ = [
    'Store',
    'ApiKey',
    'ActivityLog',
    'Webhook',
]
