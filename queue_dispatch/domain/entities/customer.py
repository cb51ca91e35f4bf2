"""Customer entity — contact points used for notification delivery."""

from dataclasses import dataclass

from queue_dispatch.domain.value_objects.enums import Channel


@dataclass
class Customer:
    id: int | None
    name: str
    phone: str | None = None
    email: str | None = None
    push_token: str | None = None

    def recipient_for(self, channel: Channel) -> str | None:
        if channel == Channel.SMS:
            return self.phone
        if channel == Channel.EMAIL:
            return self.email
        return self.push_token
