from datetime import datetime
import uuid

from sqlalchemy import Uuid
from sqlalchemy.orm import DeclarativeBase

from clinic_api.db.types import UTCDateTime


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    type_annotation_map = {
        datetime: UTCDateTime(),
        uuid.UUID: Uuid(),
    }
