"""Email notifications for the podcast host."""

from .notifier import EmailNotifier

__all__ = ["EmailNotifier"]
