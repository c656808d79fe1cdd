"""Unit tests for canoe_bridge.drivers.types helpers."""

import pytest

from canoe_bridge.drivers.types import (
    RemoteCallError,
    join_namespace,
    split_qualified_name,
)


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("Speed", (None, "Speed")),
        ("Engine::Speed", ("Engine", "Speed")),
        ("Engine::Inputs::Throttle", ("Engine::Inputs", "Throttle")),
    ],
)
def test_split_qualified_name(name, expected) -> None:
    assert split_qualified_name(name) == expected


def test_join_namespace_skips_empty_parts() -> None:
    assert join_namespace("", "Engine", "Inputs") == "Engine::Inputs"
    assert join_namespace("Engine") == "Engine"


def test_remote_call_error_keeps_remote_text() -> None:
    error = RemoteCallError("Reading Temperature failed", "Value not available")

    assert str(error) == "Reading Temperature failed"
    assert error.remote_text == "Value not available"
    assert RemoteCallError("closed").remote_text == ""
