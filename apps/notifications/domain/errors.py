from __future__ import annotations


class NotificationError(Exception):
    pass


class EmailGatewayError(NotificationError):
    pass
