# app/schemas/platform/__init__.py
from .common import CrossListContext, ExternalListingRef, RemoteStatus, TokenGrant, PlatformCredentials
