from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import pytest

from coresync.domain.errors import (
    AdapterError,
    ConflictError,
    NotFoundError,
    ParseError,
    UnknownSettingError,
    ValidationError,
)
from coresync.domain.model import Action, ObjectClass
from coresync.domain.reconciliation import ReconciliationEngine, SaveRequest, SaveStage
from tests.conftest import HOSTNAME
from tests.helpers.payloads import (
    VLESS_UUID,
    client_payload,
    dumps,
    inbound_payload,
    wireguard_payload,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from coresync.adapters.core import InMemoryCore
    from coresync.adapters.sqlalchemy import SqlAlchemyUnitOfWork
    from coresync.domain.reconciliation import SaveResult
    from tests.helpers.fakes import FakeClock, FakeProvisioner


@dataclass(frozen=True)
class ClientState:
    links: list[dict[str, str]]
    inbounds: tuple[int, ...]


def _save(
    engine: ReconciliationEngine,
    object_class: ObjectClass,
    action: Action,
    payload: object,
    *,
    actor: str = "",
    init_users: tuple[int, ...] = (),
) -> SaveResult:
    return engine.save(
        SaveRequest(
            object_class=object_class,
            action=action,
            payload=payload,
            actor=actor,
            init_users=init_users,
        )
    )


def _client(uow_factory: Callable[[], SqlAlchemyUnitOfWork], name: str) -> ClientState:
    with uow_factory() as uow:
        for client in uow.repositories.clients.list_all():
            if client.name == name:
                return ClientState(links=list(client.links), inbounds=client.inbounds)
    raise AssertionError(f"client {name} not stored")


def _counts(uow_factory: Callable[[], SqlAlchemyUnitOfWork]) -> dict[str, int]:
    with uow_factory() as uow:
        repositories = uow.repositories
        return {
            "inbounds": len(repositories.inbounds.list_all()),
            "endpoints": len(repositories.endpoints.list_all()),
            "clients": len(repositories.clients.list_all()),
            "changes": repositories.changes.count_since(0),
        }


def test_first_save_commits_and_starts_stopped_core(
    engine: ReconciliationEngine,
    core: InMemoryCore,
    clock: FakeClock,
) -> None:
    result = _save(engine, ObjectClass.INBOUNDS, Action.NEW, dumps(inbound_payload("in1")))

    assert result.committed
    assert result.changed_at == clock.now
    assert result.objects == ("inbounds", "clients")
    assert result.convergence.core_started
    assert result.convergence.converged
    assert core.tags("inbounds") == ["in1"]


def test_inbound_out_json_uses_hostname_for_wildcard_listen(
    engine: ReconciliationEngine,
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    _save(engine, ObjectClass.INBOUNDS, Action.NEW, inbound_payload("in1", port=8443))

    with sqlite_unit_of_work() as uow:
        inbound = uow.repositories.inbounds.get_by_tag("in1")
        assert inbound is not None
        assert inbound.out_json == {
            "type": "vless",
            "tag": "in1",
            "server": HOSTNAME,
            "server_port": 8443,
        }


def test_overlapping_wireguard_endpoint_is_rejected_without_side_effects(
    engine: ReconciliationEngine,
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    _save(
        engine,
        ObjectClass.ENDPOINTS,
        Action.NEW,
        dumps(wireguard_payload("ep1", allowed_ips=["10.0.0.0/24"])),
    )
    before = _counts(sqlite_unit_of_work)

    with pytest.raises(ConflictError, match="ep1"):
        _save(
            engine,
            ObjectClass.ENDPOINTS,
            Action.NEW,
            dumps(wireguard_payload("ep2", allowed_ips=["10.0.0.0/24"])),
        )

    assert _counts(sqlite_unit_of_work) == before
    assert before["endpoints"] == 1
    assert before["changes"] == 1


def test_nested_ranges_conflict_but_disjoint_ranges_do_not(
    engine: ReconciliationEngine,
) -> None:
    _save(
        engine,
        ObjectClass.ENDPOINTS,
        Action.NEW,
        wireguard_payload("ep1", allowed_ips=["10.0.0.0/16"]),
    )

    with pytest.raises(ConflictError):
        _save(
            engine,
            ObjectClass.ENDPOINTS,
            Action.NEW,
            wireguard_payload("ep2", allowed_ips=["10.0.5.0/24"]),
        )
    result = _save(
        engine,
        ObjectClass.ENDPOINTS,
        Action.NEW,
        wireguard_payload("ep3", allowed_ips=["10.1.0.0/24", "fd00::/64"]),
    )
    assert result.committed


def test_editing_endpoint_does_not_conflict_with_itself(
    engine: ReconciliationEngine,
    core: InMemoryCore,
) -> None:
    _save(
        engine,
        ObjectClass.ENDPOINTS,
        Action.NEW,
        wireguard_payload("ep1", allowed_ips=["10.0.0.0/24"]),
    )

    _save(
        engine,
        ObjectClass.ENDPOINTS,
        Action.EDIT,
        wireguard_payload("ep1-renamed", allowed_ips=["10.0.0.0/24"], endpoint_id=1),
    )

    assert core.tags("endpoints") == ["ep1-renamed"]


def test_deleting_inbound_drops_only_its_local_descriptors(
    engine: ReconciliationEngine,
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    core: InMemoryCore,
) -> None:
    external = {"type": "external", "remark": "mirror", "uri": "vless://mirror@example.org:443"}
    _save(engine, ObjectClass.INBOUNDS, Action.NEW, inbound_payload("in1"))
    _save(
        engine,
        ObjectClass.CLIENTS,
        Action.NEW,
        client_payload("alice", inbounds=[1], links=[external]),
    )

    alice = _client(sqlite_unit_of_work, "alice")
    assert [link["type"] for link in alice.links] == ["local", "external"]
    assert alice.links[0]["remark"] == "in1"
    assert alice.links[0]["uri"].startswith(f"vless://{VLESS_UUID}@{HOSTNAME}:443")

    _save(engine, ObjectClass.INBOUNDS, Action.DELETE, '"in1"')

    alice = _client(sqlite_unit_of_work, "alice")
    assert alice.links == [external]
    assert alice.inbounds == ()
    assert core.tags("inbounds") == []


def test_external_descriptors_are_stored_verbatim(
    engine: ReconciliationEngine,
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    external = {"type": "sub", "remark": "relay", "uri": "https://sub.example.org/a", "tag": "x"}
    _save(engine, ObjectClass.INBOUNDS, Action.NEW, inbound_payload("in1"))
    _save(
        engine,
        ObjectClass.CLIENTS,
        Action.NEW,
        client_payload("alice", inbounds=[1], links=[external]),
    )

    assert _client(sqlite_unit_of_work, "alice").links[1:] == [external]

    _save(
        engine,
        ObjectClass.CLIENTS,
        Action.EDIT,
        client_payload("alice", inbounds=[1], client_id=1, links=[external]),
    )

    assert _client(sqlite_unit_of_work, "alice").links[1:] == [external]


def test_linked_clients_are_injected_as_users(
    engine: ReconciliationEngine,
    core: InMemoryCore,
) -> None:
    _save(engine, ObjectClass.INBOUNDS, Action.NEW, inbound_payload("in1"))
    _save(engine, ObjectClass.CLIENTS, Action.NEW, client_payload("alice", inbounds=[1]))
    _save(
        engine,
        ObjectClass.CLIENTS,
        Action.NEW,
        client_payload("bob", inbounds=[1], enable=False),
    )

    users = core.config_of("inbounds", "in1")["users"]
    # vision flow requires tls; the inbound has none
    assert users == [{"name": "alice", "uuid": VLESS_UUID}]


def test_renaming_inbound_moves_descriptors_and_core_entry(
    engine: ReconciliationEngine,
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    core: InMemoryCore,
) -> None:
    _save(engine, ObjectClass.INBOUNDS, Action.NEW, inbound_payload("in1"))
    _save(engine, ObjectClass.CLIENTS, Action.NEW, client_payload("alice", inbounds=[1]))

    _save(
        engine,
        ObjectClass.INBOUNDS,
        Action.EDIT,
        inbound_payload("in2", inbound_id=1, port=8443),
    )

    alice = _client(sqlite_unit_of_work, "alice")
    assert [link["remark"] for link in alice.links] == ["in2"]
    assert ":8443" in alice.links[0]["uri"]
    assert core.tags("inbounds") == ["in2"]


def test_new_inbound_links_initial_users(
    engine: ReconciliationEngine,
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    _save(engine, ObjectClass.CLIENTS, Action.NEW, client_payload("alice"))

    _save(engine, ObjectClass.INBOUNDS, Action.NEW, inbound_payload("in1"), init_users=(1,))

    alice = _client(sqlite_unit_of_work, "alice")
    assert alice.inbounds == (1,)
    assert [link["remark"] for link in alice.links] == ["in1"]


def test_unknown_initial_user_rolls_back_inbound(
    engine: ReconciliationEngine,
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    with pytest.raises(ValidationError, match="unknown client ids"):
        _save(engine, ObjectClass.INBOUNDS, Action.NEW, inbound_payload("in1"), init_users=(7,))

    assert _counts(sqlite_unit_of_work)["inbounds"] == 0


def test_core_rejection_during_mutation_rolls_back(
    engine: ReconciliationEngine,
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    core: InMemoryCore,
) -> None:
    engine.start_core()
    core.fail_on.add("add_inbound")

    with pytest.raises(AdapterError):
        _save(engine, ObjectClass.INBOUNDS, Action.NEW, inbound_payload("in1"))

    counts = _counts(sqlite_unit_of_work)
    assert counts["inbounds"] == 0
    assert counts["changes"] == 0
    assert engine.watermark.value == 0


def test_post_commit_failure_keeps_the_save(
    engine: ReconciliationEngine,
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    core: InMemoryCore,
) -> None:
    _save(engine, ObjectClass.INBOUNDS, Action.NEW, inbound_payload("in1"))
    core.fail_on.add("add_inbound")

    result = _save(engine, ObjectClass.CLIENTS, Action.NEW, client_payload("alice", inbounds=[1]))

    assert result.committed
    assert not result.convergence.converged
    assert result.stage is SaveStage.PATCHING
    assert result.convergence.errors[0].startswith("in1")
    assert _counts(sqlite_unit_of_work)["clients"] == 1


def test_inbound_edit_replaces_the_live_entry_when_remove_fails(
    engine: ReconciliationEngine,
    core: InMemoryCore,
) -> None:
    _save(engine, ObjectClass.INBOUNDS, Action.NEW, inbound_payload("in1"))
    core.fail_on.add("remove_inbound")

    result = _save(
        engine, ObjectClass.INBOUNDS, Action.EDIT, inbound_payload("in1", inbound_id=1, port=8443)
    )

    assert result.committed
    assert result.stage is SaveStage.DONE
    assert core.tags("inbounds") == ["in1"]
    assert core.config_of("inbounds", "in1")["listen_port"] == 8443


def test_client_edit_restarts_old_and_new_inbounds(engine: ReconciliationEngine) -> None:
    _save(engine, ObjectClass.INBOUNDS, Action.NEW, inbound_payload("in1"))
    _save(engine, ObjectClass.INBOUNDS, Action.NEW, inbound_payload("in2", port=444))
    _save(engine, ObjectClass.CLIENTS, Action.NEW, client_payload("alice", inbounds=[1]))

    result = _save(
        engine,
        ObjectClass.CLIENTS,
        Action.EDIT,
        client_payload("alice", inbounds=[2], client_id=1),
    )

    assert sorted(result.convergence.restarted) == ["in1", "in2"]


def test_duplicate_inbound_tag_is_a_conflict(engine: ReconciliationEngine) -> None:
    _save(engine, ObjectClass.INBOUNDS, Action.NEW, inbound_payload("in1"))

    with pytest.raises(ConflictError):
        _save(engine, ObjectClass.INBOUNDS, Action.NEW, inbound_payload("in1", port=444))


def test_editing_missing_record_is_not_found(engine: ReconciliationEngine) -> None:
    with pytest.raises(NotFoundError):
        _save(engine, ObjectClass.INBOUNDS, Action.EDIT, inbound_payload("in1", inbound_id=42))


def test_unsupported_action_is_rejected(engine: ReconciliationEngine) -> None:
    with pytest.raises(ValidationError, match="not supported"):
        _save(engine, ObjectClass.SETTINGS, Action.NEW, {"webPort": "1"})


def test_malformed_payload_is_a_parse_error(engine: ReconciliationEngine) -> None:
    with pytest.raises(ParseError):
        _save(engine, ObjectClass.INBOUNDS, Action.NEW, "{not json")


def test_settings_are_coerced_and_unknown_keys_rejected(
    engine: ReconciliationEngine,
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    _save(engine, ObjectClass.SETTINGS, Action.SET, {"webPort": " 8080 ", "subEncode": "FALSE"})

    with pytest.raises(UnknownSettingError):
        _save(engine, ObjectClass.SETTINGS, Action.SET, {"webPort": "9090", "nope": "1"})

    with sqlite_unit_of_work() as uow:
        port = uow.repositories.settings.get("webPort")
        encode = uow.repositories.settings.get("subEncode")
        assert port is not None
        assert port.value == "8080"
        assert encode is not None
        assert encode.value == "false"


def test_config_save_restarts_core_with_new_base(
    engine: ReconciliationEngine,
    core: InMemoryCore,
) -> None:
    _save(engine, ObjectClass.INBOUNDS, Action.NEW, inbound_payload("in1"))
    core.calls.clear()

    _save(engine, ObjectClass.CONFIG, Action.SET, '{"log": {"level": "warn"}, "bogus": 1}')

    assert core.calls == [("stop", ""), ("start", "")]
    assert core.document is not None
    assert core.document["log"] == {"level": "warn"}
    assert "bogus" not in core.document
    assert [inbound["tag"] for inbound in core.document["inbounds"]] == ["in1"]


def test_invalid_base_document_is_rejected(
    engine: ReconciliationEngine,
    core: InMemoryCore,
) -> None:
    engine.start_core()
    core.calls.clear()

    with pytest.raises(ParseError):
        _save(engine, ObjectClass.CONFIG, Action.SET, '{"log": [1, 2]}')

    assert core.calls == []


def test_warp_endpoint_is_provisioned_and_license_updated(
    engine: ReconciliationEngine,
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    provisioner: FakeProvisioner,
    core: InMemoryCore,
) -> None:
    _save(engine, ObjectClass.ENDPOINTS, Action.NEW, {"type": "warp", "tag": "warp"})

    assert provisioner.registrations == 1
    assert core.config_of("endpoints", "warp")["type"] == "wireguard"

    with sqlite_unit_of_work() as uow:
        endpoint = uow.repositories.endpoints.get_by_tag("warp")
        assert endpoint is not None
        edit = {
            **endpoint.options,
            "id": endpoint.id,
            "type": "warp",
            "tag": "warp",
            "ext": {"access_token": "******", "license_key": "LICENSE-1"},
        }

    _save(engine, ObjectClass.ENDPOINTS, Action.EDIT, edit)

    assert provisioner.registrations == 1
    assert provisioner.license_updates == [("", "LICENSE-1")]
    with sqlite_unit_of_work() as uow:
        endpoint = uow.repositories.endpoints.get_by_tag("warp")
        assert endpoint is not None
        assert endpoint.ext["access_token"] == "token-1"
        assert endpoint.ext["license_key"] == "LICENSE-1"


def test_second_warp_endpoint_conflicts_on_default_route(
    engine: ReconciliationEngine,
    provisioner: FakeProvisioner,
) -> None:
    _save(engine, ObjectClass.ENDPOINTS, Action.NEW, {"type": "warp", "tag": "warp1"})

    with pytest.raises(ConflictError):
        _save(engine, ObjectClass.ENDPOINTS, Action.NEW, {"type": "warp", "tag": "warp2"})

    assert provisioner.registrations == 1


def test_warp_route_conflict_is_found_before_registration(
    engine: ReconciliationEngine,
    provisioner: FakeProvisioner,
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    _save(
        engine,
        ObjectClass.ENDPOINTS,
        Action.NEW,
        wireguard_payload("ep1", allowed_ips=["10.0.0.0/24"]),
    )

    with pytest.raises(ConflictError):
        _save(engine, ObjectClass.ENDPOINTS, Action.NEW, {"type": "warp", "tag": "w1"})

    assert provisioner.registrations == 0
    assert _counts(sqlite_unit_of_work)["endpoints"] == 1


def test_tls_edit_refreshes_inbounds_and_blocks_delete(
    engine: ReconciliationEngine,
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    tls = {"name": "main", "server": {"enabled": True, "server_name": "a.example.com"}}
    _save(engine, ObjectClass.TLS, Action.NEW, tls)
    _save(engine, ObjectClass.INBOUNDS, Action.NEW, inbound_payload("in1", tls_id=1))
    _save(engine, ObjectClass.CLIENTS, Action.NEW, client_payload("alice", inbounds=[1]))

    result = _save(
        engine,
        ObjectClass.TLS,
        Action.EDIT,
        {"id": 1, "name": "main", "server": {"enabled": True, "server_name": "b.example.com"}},
    )

    assert result.convergence.restarted == ["in1"]
    with sqlite_unit_of_work() as uow:
        inbound = uow.repositories.inbounds.get_by_tag("in1")
        assert inbound is not None
        assert inbound.out_json["tls"]["server_name"] == "b.example.com"
    alice = _client(sqlite_unit_of_work, "alice")
    assert "sni=b.example.com" in alice.links[0]["uri"]
    assert "flow=xtls-rprx-vision" in alice.links[0]["uri"]

    with pytest.raises(ValidationError, match="used by inbounds"):
        _save(engine, ObjectClass.TLS, Action.DELETE, "1")


def test_addbulk_creates_each_client_with_its_own_inbounds(
    engine: ReconciliationEngine,
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    _save(engine, ObjectClass.INBOUNDS, Action.NEW, inbound_payload("in1"))
    _save(engine, ObjectClass.INBOUNDS, Action.NEW, inbound_payload("in2", port=444))

    _save(
        engine,
        ObjectClass.CLIENTS,
        Action.ADD_BULK,
        [client_payload("u1", inbounds=[1]), client_payload("u2", inbounds=[2])],
    )

    assert _client(sqlite_unit_of_work, "u1").inbounds == (1,)
    assert _client(sqlite_unit_of_work, "u2").inbounds == (2,)


def test_each_save_appends_one_change_record(
    engine: ReconciliationEngine,
    clock: FakeClock,
) -> None:
    _save(engine, ObjectClass.INBOUNDS, Action.NEW, inbound_payload("in1"), actor="admin")
    clock.tick()
    _save(engine, ObjectClass.INBOUNDS, Action.DELETE, "1", actor="admin")

    records = engine.feed.recent(actor="admin")
    assert [(record.key, record.action) for record in records] == [
        ("inbounds", "del"),
        ("inbounds", "new"),
    ]
    assert records[0].obj == 1
    assert records[1].obj["tag"] == "in1"
