"""Notification collaborator: hands summaries and overviews to the email service."""

from .client import DeliveryResult, Notifier, HttpNotifier, NullNotifier, build_notifier

__all__ = ["DeliveryResult", "Notifier", "HttpNotifier", "NullNotifier", "build_notifier"]
