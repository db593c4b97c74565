from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class OutgoingEmail:
    to_email: str
    subject: str
    text: str
    html: str = ""


class EmailGateway(ABC):
    name: str

    @abstractmethod
    def send_email(self, *, message: OutgoingEmail, from_email: str) -> None:
        raise NotImplementedError
