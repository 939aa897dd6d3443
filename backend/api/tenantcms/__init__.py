"""Multi-tenant content platform API: moderation, ownership and throttling core."""

__version__ = "0.5.0"
