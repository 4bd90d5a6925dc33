from abc import ABC, abstractmethod


class BaseSource(ABC):
    @abstractmethod
    async def ingest(self, **kwargs) -> dict:
        """
        Implement fetch -> parse -> store. Return a dict of run stats (including collected errors).
        """
        raise NotImplementedError
