from models.base_model import ActiveFlagMixin, Base, BaseModel
from sqlalchemy import Column, Integer, String, JSON


class User(ActiveFlagMixin, BaseModel, Base):
    __tablename__ = "users"
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=True)
    role = Column(String(32), nullable=False, default="user")
    # sha256 of the live refresh token's jti; NULL means no session
    refresh_token_hash = Column(String(64), nullable=True)
    points = Column(Integer, nullable=False, default=0)
    address = Column(JSON, nullable=True, default=lambda: {})
    profile = Column(JSON, nullable=True, default=lambda: {})
    preferences = Column(JSON, nullable=True, default=lambda: {})

    @property
    def password(self):
        raise AttributeError("Password: Write-only field")

    def __repr__(self):
        return f"<User {self.email} role={self.role}>"
