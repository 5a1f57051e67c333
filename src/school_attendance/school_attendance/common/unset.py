from __future__ import annotations

from typing import Any


class _Unset:
    """Marks an optional argument the caller did not supply.

    Lets partial updates tell "leave as is" apart from "set to None".
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


def is_set(value: Any) -> bool:
    return value is not UNSET
