from __future__ import annotations

from smtplib import SMTPException

from django.core.mail import EmailMultiAlternatives

from apps.notifications.domain.errors import EmailGatewayError
from apps.notifications.domain.ports import EmailGateway, OutgoingEmail


class SmtpEmailGateway(EmailGateway):
    """Sends through Django's configured mail backend (SMTP in production)."""

    name = "smtp"

    def send_email(self, *, message: OutgoingEmail, from_email: str) -> None:
        email = EmailMultiAlternatives(
            subject=message.subject,
            body=message.text or "",
            from_email=from_email,
            to=[message.to_email],
        )
        if message.html:
            email.attach_alternative(message.html, "text/html")
        try:
            email.send(fail_silently=False)
        except (SMTPException, OSError) as exc:
            raise EmailGatewayError(str(exc)) from exc
