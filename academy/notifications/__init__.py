"""Notification fan-out."""

from academy.notifications.fanout import FanoutRequest, FanoutResult, NotificationFanout

__all__ = ["FanoutRequest", "FanoutResult", "NotificationFanout"]
