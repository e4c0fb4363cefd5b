from tiergate.db.models.usage import UsageCounter

__all__ = ["UsageCounter"]
