from abc import ABC, abstractmethod


class EmailProvider(ABC):
    @abstractmethod
    def send(self, to_email: str, subject: str, body: str) -> str:
        """
        Returns a provider message id ("" when the provider has none).
        Raises on delivery failure.
        """
        raise NotImplementedError
