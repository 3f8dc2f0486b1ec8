"""Address book port.

Addresses are owned by the customer-account side of the store; checkout
only needs to know that a referenced address exists and belongs to the
customer placing the order.
"""

from abc import ABC, abstractmethod


class AddressBook(ABC):
    @abstractmethod
    def exists(self, address_id: str, customer_id: str) -> bool:
        """True when ``address_id`` is one of ``customer_id``'s addresses."""
        ...
