"""
Ordered, case-insensitive, multi-valued HTTP headers.

HeaderMultiMap keeps every (name, value) pair in insertion order.
Lookups compare names case-insensitively; the original casing of
each name is preserved for the wire and for iteration.
"""

from typing import Iterable, Iterator, List, Optional, Tuple, Union

HeaderPair = Tuple[str, str]

_FORBIDDEN_NAME_CHARS = frozenset(' \t\r\n:()<>@,;\\"/[]?={}')


def _to_str(value: Union[str, bytes]) -> str:
    if isinstance(value, bytes):
        return value.decode("latin-1")
    return value


def validate_header_name(name: str) -> str:
    """
    Validate a header name supplied by the caller.
    
    Raises:
        ValueError: If the name is not a string, is empty or contains separators
    """
    if not isinstance(name, str):
        raise ValueError(f"header name must be a string, got {type(name).__name__}")
    name = name.strip()
    if not name:
        raise ValueError("header name must not be empty")
    if not name.isascii() or any(ch in _FORBIDDEN_NAME_CHARS for ch in name):
        raise ValueError(f"invalid header name: {name!r}")
    return name


def validate_header_value(name: str, value: str) -> str:
    """
    Validate a header value supplied by the caller.
    
    Raises:
        ValueError: If the value is not a latin-1 string, is empty or
                    contains line breaks
    """
    if not isinstance(value, str):
        raise ValueError(f"header {name!r} value must be a string, got {type(value).__name__}")
    if value == "":
        raise ValueError(f"header {name!r} must not have an empty value")
    if "\r" in value or "\n" in value:
        raise ValueError(f"header {name!r} value must not contain line breaks")
    try:
        value.encode("latin-1")
    except UnicodeEncodeError as e:
        raise ValueError(f"header {name!r} value is not latin-1 encodable") from e
    return value


class HeaderMultiMap:
    """
    Ordered sequence of (name, value) header pairs.
    
    ``set`` replaces every existing value for a name, ``add`` appends
    a further value. Values received from a server are stored as-is,
    including empty ones.
    """
    
    __slots__ = ("_items",)
    
    def __init__(self, items: Optional[Iterable[Tuple[Union[str, bytes], Union[str, bytes]]]] = None) -> None:
        self._items: List[HeaderPair] = []
        if items is not None:
            for name, value in items:
                self._items.append((_to_str(name), _to_str(value)))
    
    def set(self, name: str, value: str) -> "HeaderMultiMap":
        """Replace all values for ``name`` with a single value."""
        name = validate_header_name(name)
        value = validate_header_value(name, value)
        
        lowered = name.lower()
        position = None
        kept: List[HeaderPair] = []
        for existing, existing_value in self._items:
            if existing.lower() == lowered:
                if position is None:
                    position = len(kept)
                continue
            kept.append((existing, existing_value))
        
        # An overwritten header keeps the slot of its first occurrence.
        if position is None:
            kept.append((name, value))
        else:
            kept.insert(position, (name, value))
        self._items = kept
        return self
    
    def add(self, name: str, value: str) -> "HeaderMultiMap":
        """Append a value for ``name``, keeping existing ones."""
        name = validate_header_name(name)
        value = validate_header_value(name, value)
        self._items.append((name, value))
        return self
    
    def remove(self, name: str) -> "HeaderMultiMap":
        """Remove every value for ``name``."""
        lowered = name.lower()
        self._items = [item for item in self._items if item[0].lower() != lowered]
        return self
    
    def get_first(self, name: str) -> Optional[str]:
        """Return the first value for ``name`` or None."""
        lowered = name.lower()
        for existing, value in self._items:
            if existing.lower() == lowered:
                return value
        return None
    
    def get_all(self, name: str) -> List[str]:
        """Return all values for ``name`` in insertion order."""
        lowered = name.lower()
        return [value for existing, value in self._items if existing.lower() == lowered]
    
    def iterate(self) -> Iterator[Tuple[int, str, str]]:
        """Yield ``(index, name, value)`` triples starting at 0."""
        for index, (name, value) in enumerate(self._items):
            yield index, name, value
    
    def copy(self) -> "HeaderMultiMap":
        """Return an independent copy."""
        return HeaderMultiMap(self._items)
    
    def raw(self) -> List[Tuple[bytes, bytes]]:
        """Return the pairs encoded for the wire."""
        return [
            (name.encode("latin-1"), value.encode("latin-1"))
            for name, value in self._items
        ]
    
    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        return self.get_first(name) is not None
    
    def __iter__(self) -> Iterator[HeaderPair]:
        return iter(list(self._items))
    
    def __len__(self) -> int:
        return len(self._items)
    
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HeaderMultiMap):
            return NotImplemented
        return self._items == other._items
    
    def __repr__(self) -> str:
        return f"HeaderMultiMap({self._items!r})"
