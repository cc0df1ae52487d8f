# app/models/__init__.py
from app.models.stock import Stock
from app.models.recommendation import Recommendation
from app.models.watchlist import WatchlistEntry
from app.models.alert import Alert
from app.models.profile import Profile
from app.models.enums import AlertType, RecommendationType, SubscriptionType

__all__ = [
    "Stock",
    "Recommendation",
    "WatchlistEntry",
    "Alert",
    "Profile",
    "AlertType",
    "RecommendationType",
    "SubscriptionType",
]
