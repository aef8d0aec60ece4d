from .base import Base, Database, get_db
from .models import Annotation, Heat, Log

__all__ = ["Base", "Database", "get_db", "Annotation", "Heat", "Log"]
