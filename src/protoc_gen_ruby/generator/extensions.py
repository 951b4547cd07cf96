from __future__ import annotations

from typing import Dict, Iterable, List

from protoc_gen_ruby.models import Field


class ExtensionRegistry:
    """Extension fields waiting to be printed, keyed by the extended message.

    Buckets keep discovery order, and keys keep first-recorded order. A
    bucket is handed out at most once: either when the extended message's
    field body is printed, or at the end of the file for messages that are
    never printed locally.
    """

    def __init__(self) -> None:
        self._buckets: Dict[str, List[Field]] = {}

    def record(self, extension: Field) -> None:
        self._buckets.setdefault(extension.containing_type, []).append(extension)

    def record_all(self, extensions: Iterable[Field]) -> None:
        for extension in extensions:
            self.record(extension)

    def has_pending(self, full_name: str) -> bool:
        return bool(self._buckets.get(full_name))

    def take(self, full_name: str) -> List[Field]:
        return self._buckets.pop(full_name, [])

    def remaining_keys(self) -> List[str]:
        return [name for name, bucket in self._buckets.items() if bucket]

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self._buckets.values())
