from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from lockguard.core.time import utcnow
from lockguard.models.base import Base


class LoginAttempt(Base):
    """One row per identity with at least one recent failed login.

    Rows are deleted (never zeroed) when the identity returns to a clean state.
    """

    __tablename__ = "login_attempts"

    id: Mapped[int] = mapped_column(primary_key=True)
    identity: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)
    failed_attempts: Mapped[int] = mapped_column(Integer, default=1)
    last_attempt_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    lockout_until: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, index=True)
