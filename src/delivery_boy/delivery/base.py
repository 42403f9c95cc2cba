"""
Module to contain base class for Delivery channels
"""
from abc import ABC, abstractmethod

from delivery_boy.core.schemas import Embed


class DeliveryChannel(ABC):
    """
    Base interface for all delivery channels.
    """

    name: str

    @abstractmethod
    async def deliver(self, *, embed: Embed) -> None:
        """
        Deliver the digest embed.
        Must raise DeliveryFailure on failure (handled upstream).
        """
        raise NotImplementedError
