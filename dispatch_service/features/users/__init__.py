"""Recipient profiles."""

from .models import User
from .repository import UserRepository, get_user_repository

__all__ = ["User", "UserRepository", "get_user_repository"]
