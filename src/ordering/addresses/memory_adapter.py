"""In-memory address book for development and testing."""

from ordering.addresses.port import AddressBook


class InMemoryAddressBook(AddressBook):
    def __init__(self) -> None:
        self._owners: dict[str, str] = {}

    def register(self, address_id: str, customer_id: str) -> None:
        self._owners[str(address_id)] = str(customer_id)

    def exists(self, address_id: str, customer_id: str) -> bool:
        return self._owners.get(str(address_id)) == str(customer_id)
