from abc import ABC, abstractmethod


class AbstractLinkSender(ABC):
    """Interface for delivering a magic link to its recipient."""

    @abstractmethod
    def send(self, email: str, link: str) -> None:
        """Deliver the link to the given address.

        Args:
            email: Normalized recipient address.
            link: Complete magic link URL, including the raw token.

        Raises:
            LinkDeliveryError: If the link could not be handed to the provider.
        """
        raise NotImplementedError
