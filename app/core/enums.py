"""
Shared enums and constants used across the application.
"""

from enum import Enum

class PlatformName(str, Enum):
    EBAY = "EBAY"
    ETSY = "ETSY"
    AUCTIONFLEX = "AUCTIONFLEX360"

    @property
    def slug(self):
        # "EBAY" -> "ebay", "AUCTIONFLEX360" -> "auctionflex360"
        return self.value.lower().replace('& ', 'and').replace(' ', '').replace('-', '')


class ProductStatus(str, Enum):
    """Product status values used in both models and schemas"""
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    SOLD = "SOLD"
    ARCHIVED = "ARCHIVED"


class ListingType(str, Enum):
    BUY_NOW = "BUY_NOW"
    AUCTION = "AUCTION"
    BOTH = "BOTH"


class AuctionStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    LIVE = "LIVE"
    ENDED = "ENDED"
    SOLD = "SOLD"


class ListingStatus(str, Enum):
    """
    Lifecycle of a PlatformListing row.

    ACTIVE -> SOLD and ACTIVE -> REMOVED are terminal.
    ACTIVE -> ERROR is transient; ERROR goes back to ACTIVE on the next
    successful sync or re-publish.
    """
    ACTIVE = "ACTIVE"
    SOLD = "SOLD"
    REMOVED = "REMOVED"
    ERROR = "ERROR"

    @property
    def is_terminal(self) -> bool:
        return self in (ListingStatus.SOLD, ListingStatus.REMOVED)


class RemoteListingStatus(str, Enum):
    """Normalised status reported by a marketplace for one external listing."""
    ACTIVE = "active"
    SOLD = "sold"
    ENDED = "ended"


class ConnectionState(str, Enum):
    UNLINKED = "UNLINKED"
    LINKED = "LINKED"
    EXPIRED = "EXPIRED"
    REVOKED = "REVOKED"
