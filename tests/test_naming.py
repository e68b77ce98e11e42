from __future__ import annotations

from pathlib import Path

import pytest

from protosql import default_message_name, default_table_name, find_message, parse_source
from protosql.naming import to_camel_case


@pytest.mark.parametrize(
    ("path", "message", "table"),
    [
        ("user_account.proto", "UserAccount", "user_account"),
        ("protos/order.v1.proto", "Order", "order"),
        (Path("/srv/protos/event_log_entry.proto"), "EventLogEntry", "event_log_entry"),
        ("already_Camel.proto", "AlreadyCamel", "already_Camel"),
        ("user-account.proto", "UserAccount", "user-account"),
        ("USER_ACCOUNT.proto", "UserAccount", "USER_ACCOUNT"),
        ("userAccount.proto", "UserAccount", "userAccount"),
        ("XMLHttpRequest.proto", "XmlHttpRequest", "XMLHttpRequest"),
        ("audit log v2.proto", "AuditLogV2", "audit log v2"),
    ],
)
def test_default_names(path, message: str, table: str) -> None:
    assert default_message_name(path) == message
    assert default_table_name(path) == table


def test_find_message_is_top_level_only() -> None:
    proto = parse_source("message Outer { message Inner {} } message Other {}")
    assert find_message(proto, "Other").name.value == "Other"
    with pytest.raises(LookupError):
        find_message(proto, "Inner")


@pytest.mark.parametrize(
    ("name", "camel"),
    [
        ("user_account", "UserAccount"),
        ("user--account__id", "UserAccountId"),
        ("UserAccount", "UserAccount"),
        ("HTTPServer", "HttpServer"),
        ("", ""),
    ],
)
def test_to_camel_case(name: str, camel: str) -> None:
    assert to_camel_case(name) == camel
