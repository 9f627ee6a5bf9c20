from sqlalchemy import Column, DateTime, Integer, String

from restaurant_api.core.database import Base


class PasswordReset(Base):
    __tablename__ = "password_resets"

    id = Column(Integer, primary_key=True)
    email = Column(String(255), index=True, nullable=False)
    otp = Column(String(6), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False)


class PasswordResetAttempt(Base):
    __tablename__ = "password_reset_attempts"

    id = Column(Integer, primary_key=True)
    identifier = Column(String(255), index=True, nullable=False)
    requested_at = Column(DateTime, index=True, nullable=False)
