from lockguard.models.base import Base
from lockguard.models.login_attempt import LoginAttempt

__all__ = [
    "Base",
    "LoginAttempt",
]
