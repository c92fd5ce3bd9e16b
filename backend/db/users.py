from fastapi_users.db import SQLAlchemyBaseUserTableUUID
from sqlalchemy import Column, String

from .database import Base


class User(SQLAlchemyBaseUserTableUUID, Base):
    """Employee account; the acting user is recorded on every transaction."""
    __tablename__ = "users"

    name = Column(String, nullable=True)

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
        }
