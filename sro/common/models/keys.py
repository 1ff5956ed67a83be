from typing import NamedTuple, Optional


class ObjectKey(NamedTuple):
    """Namespaced identity of a resource; namespace is None when cluster scoped."""

    name: str
    namespace: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}" if self.namespace else self.name
