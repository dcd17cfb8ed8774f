# app/models/platform_connection.py
from sqlalchemy import Column, Integer, String, Boolean, Text, text, TIMESTAMP
from sqlalchemy.orm import relationship

from ..database import Base
from app.core.enums import ConnectionState


class PlatformConnection(Base):
    """
    One credential set per marketplace.

    Written only through the token lifecycle manager. Rows are never deleted;
    a revoked or disconnected platform is kept with is_active = False.
    """
    __tablename__ = "platform_connections"

    id = Column(Integer, primary_key=True)
    created_at = Column(
        TIMESTAMP(timezone=False),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )
    updated_at = Column(
        TIMESTAMP(timezone=False),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False
    )

    platform = Column(String, unique=True, nullable=False)
    access_token = Column(Text)
    refresh_token = Column(Text)
    expires_at = Column(TIMESTAMP(timezone=False))  # NULL for API-key platforms
    store_id = Column(String)  # Etsy shop id, eBay username, AuctionFlex company id
    is_active = Column(Boolean, default=True, nullable=False)

    listings = relationship("PlatformListing", back_populates="connection")

    def state_at(self, now, skew_seconds: int = 0) -> ConnectionState:
        if not self.is_active:
            return ConnectionState.REVOKED
        if self.expires_at is None:
            return ConnectionState.LINKED
        remaining = (self.expires_at - now).total_seconds()
        return ConnectionState.LINKED if remaining > skew_seconds else ConnectionState.EXPIRED

    def __repr__(self):
        return f"<PlatformConnection(platform='{self.platform}', active={self.is_active}, expires_at={self.expires_at})>"
