from clinicdesk.models.record import StoredCollection

__all__ = ["StoredCollection"]
