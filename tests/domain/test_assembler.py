from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from coresync.domain.assembler import ConfigAssembler
from coresync.domain.errors import ParseError
from coresync.domain.model import Client, Endpoint, Inbound, Outbound

if TYPE_CHECKING:
    from collections.abc import Callable

    from coresync.adapters.sqlalchemy import SqlAlchemyUnitOfWork


def _seed(uow_factory: Callable[[], SqlAlchemyUnitOfWork]) -> None:
    with uow_factory() as uow:
        repositories = uow.repositories
        inbound = Inbound(
            type="trojan",
            tag="in1",
            options={"listen": "::", "listen_port": 443},
        )
        repositories.inbounds.add(inbound)
        assert inbound.id is not None
        alice = Client(name="alice", config={"trojan": {"name": "alice", "password": "p"}})
        alice.add_inbound(inbound.id)
        repositories.clients.add(alice)
        repositories.outbounds.add(Outbound(type="direct", tag="direct", options={}))
        repositories.endpoints.add(
            Endpoint(
                type="warp",
                tag="warp",
                options={"peers": []},
                ext={"access_token": "secret"},
            )
        )
        uow.commit()


def test_assemble_uses_default_base_and_stored_records(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    _seed(sqlite_unit_of_work)

    with sqlite_unit_of_work() as uow:
        document = ConfigAssembler(uow.repositories).assemble()

    assert document["log"] == {"level": "info"}
    assert document["inbounds"] == [
        {
            "listen": "::",
            "listen_port": 443,
            "type": "trojan",
            "tag": "in1",
            "users": [{"name": "alice", "password": "p"}],
        }
    ]
    assert document["outbounds"] == [{"type": "direct", "tag": "direct"}]
    assert document["endpoints"] == [{"peers": [], "type": "wireguard", "tag": "warp"}]


def test_override_replaces_arrays_and_drops_unknown_sections(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    _seed(sqlite_unit_of_work)
    override = {
        "dns": {"servers": []},
        "inbounds": [{"type": "tun", "tag": "stale"}],
        "services": [],
    }

    with sqlite_unit_of_work() as uow:
        document = ConfigAssembler(uow.repositories).assemble(override)

    assert "log" not in document
    assert "services" not in document
    assert document["dns"] == {"servers": []}
    assert [inbound["tag"] for inbound in document["inbounds"]] == ["in1"]


def test_invalid_base_is_a_parse_error(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    with sqlite_unit_of_work() as uow, pytest.raises(ParseError, match="route"):
        ConfigAssembler(uow.repositories).assemble('{"route": "nope"}')


@pytest.mark.parametrize("override", ["", b"", {}])
def test_empty_override_falls_back_to_the_stored_base(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    override: str | bytes | dict[str, object],
) -> None:
    _seed(sqlite_unit_of_work)

    with sqlite_unit_of_work() as uow:
        assembler = ConfigAssembler(uow.repositories)
        document = assembler.assemble(override)

        assert document == assembler.assemble()
    assert document["log"] == {"level": "info"}
