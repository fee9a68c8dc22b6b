from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class DeliveryResult:
	"""Outcome of one send attempt; ``error`` is None on success."""

	error: str | None = None
	message_id: str | None = None

	@property
	def ok(self) -> bool:
		return self.error is None


class AbstractDeliveryClient(ABC):
	"""Interface for transactional message providers."""

	@abstractmethod
	async def send(self, to: str, subject: str, content: str) -> DeliveryResult:
		"""Send one HTML message.

		Args:
			to: Recipient address.
			subject: Message subject line.
			content: Rendered HTML body.

		Returns:
			DeliveryResult: Provider-reported errors are returned, not raised.

		Raises:
			httpx.HTTPError: On transport failures (connection, timeout).
		"""
		...

	async def close(self) -> None:
		"""Release provider resources."""
		return None
