from abc import ABC, abstractmethod
from typing import Dict, Iterator, Optional

from accounts import Account


class AccountRepository(ABC):
    @abstractmethod
    def get(self, client_id: int) -> Optional[Account]:
        """Get account. Returns None if the client has not been seen yet."""
        pass

    @abstractmethod
    def get_or_create(self, client_id: int) -> Account:
        """Get account, creating a zero-balance unlocked one on first reference."""
        pass

    @abstractmethod
    def __iter__(self) -> Iterator[Account]:
        """Iterate accounts in ascending client id order."""
        pass

    @abstractmethod
    def get_accounts_count(self) -> int:
        """Get total number of accounts."""
        pass


class InMemoryAccountRepository(AccountRepository):
    def __init__(self):
        self.accounts: Dict[int, Account] = {}

    def get(self, client_id: int) -> Optional[Account]:
        return self.accounts.get(client_id)

    def get_or_create(self, client_id: int) -> Account:
        account = self.accounts.get(client_id)
        if account is None:
            account = Account(client_id)
            self.accounts[client_id] = account
        return account

    def __iter__(self) -> Iterator[Account]:
        for client_id in sorted(self.accounts):
            yield self.accounts[client_id]

    def get_accounts_count(self) -> int:
        return len(self.accounts)
