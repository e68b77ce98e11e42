from __future__ import annotations

import re
from pathlib import Path

from . import ast as A


# Acronym runs, capitalized or lowercase words, digit runs.
_WORD_RE = re.compile(r"[A-Z]+(?![a-z])|[A-Z]?[a-z]+|[0-9]+")


def _base_name(path: str | Path) -> str:
    # `user_account.v1.proto` -> `user_account`
    return Path(path).name.split(".", 1)[0]


def to_camel_case(name: str) -> str:
    """UpperCamelCase: `user_account`, `user-account` and `USER_ACCOUNT` all give `UserAccount`.

    Words split on any non-alphanumeric character and on case boundaries
    (`XMLHttpRequest` -> `XmlHttpRequest`).
    """
    return "".join(word.capitalize() for word in _WORD_RE.findall(name))


def default_message_name(path: str | Path) -> str:
    return to_camel_case(_base_name(path))


def default_table_name(path: str | Path) -> str:
    return _base_name(path)


def find_message(proto: A.ProtoFile, name: str) -> A.Message:
    """Top-level message called `name`; nested messages are not searched."""
    for msg in proto.messages:
        if msg.name is not None and msg.name.value == name:
            return msg
    raise LookupError(f"message {name!r}")
