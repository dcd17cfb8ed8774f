from .activity_log import ActivityLog
from .product import Product, ProductImage, Auction
from .platform_connection import PlatformConnection
from .platform_listing import PlatformListing

# This ensures all models are registered with SQLAlchemy
__all__ = [
    'ActivityLog',
    'Product',
    'ProductImage',
    'Auction',
    'PlatformConnection',
    'PlatformListing',
]
