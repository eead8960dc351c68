from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column
from fittrack.database import Base

class User(Base):
    __tablename__ = "users"

    # Opaque id issued by the auth provider
    id: Mapped[str] = mapped_column(String, primary_key=True)
    username: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
