"""Tests for the clustermgrctl command line interface."""

import json
from unittest.mock import patch

import pytest
import yaml
from click.testing import CliRunner

from clustermgrctl import carry_forward, cli
from config import get_config, reset_config
from fakeserver import FakeBackend, InMemoryServiceClient
from models import ServiceDescriptor

DOCUMENT = {
    "serviceclass_id": "ENTERPRISE_250_STANDALONE",
    "name": "ocs-prov-test",
    "datacenter_id": "aks-germanywestcentral",
}

BASE_ARGS = [
    "--host",
    "http://fake",
    "--token",
    "token",
    "--polling-interval",
    "10ms",
    "--polling-timeout",
    "5s",
]


class ContextClient(InMemoryServiceClient):
    """In-process client usable where the CLI expects MissionControlClient."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return None


@pytest.fixture
def cli_backend():
    return FakeBackend(threshold=0.02)


@pytest.fixture
def runner(cli_backend):
    reset_config()
    with patch(
        "clustermgrctl.MissionControlClient",
        side_effect=lambda host, token: ContextClient(cli_backend),
    ):
        yield CliRunner()
    reset_config()


@pytest.fixture
def document_file(tmp_path):
    def write(document, name="service.yaml"):
        path = tmp_path / name
        path.write_text(yaml.safe_dump(document))
        return str(path)

    return write


def apply_json(runner, *args):
    result = runner.invoke(cli, BASE_ARGS + ["apply", "-o", "json", *args])
    assert result.exit_code == 0, result.output
    body = result.output[result.output.index("{"):]
    return json.loads(body)


class TestApply:
    """Tests for the apply command."""

    def test_create(self, runner, cli_backend, document_file):
        service = apply_json(runner, document_file(DOCUMENT))

        assert service["status"] == "COMPLETED"
        assert service["username"] == "client-user"
        assert cli_backend.store.ids() == [service["id"]]

    def test_create_from_json_file(self, runner, tmp_path):
        path = tmp_path / "service.json"
        path.write_text(json.dumps(DOCUMENT))

        service = apply_json(runner, str(path))

        assert service["name"] == "ocs-prov-test"

    def test_update_in_place(self, runner, document_file):
        created = apply_json(runner, document_file(DOCUMENT))

        updated = apply_json(
            runner,
            document_file({**DOCUMENT, "name": "renamed"}),
            "--id",
            created["id"],
        )

        assert updated["id"] == created["id"]
        assert updated["name"] == "renamed"

    def test_replace_asks_for_confirmation(self, runner, cli_backend, document_file):
        created = apply_json(runner, document_file(DOCUMENT))
        moved = document_file({**DOCUMENT, "datacenter_id": "aws-eu-west-1"})

        result = runner.invoke(
            cli, BASE_ARGS + ["apply", moved, "--id", created["id"]], input="n\n"
        )

        assert result.exit_code == 0
        assert "Plan: replace" in result.output
        assert "datacenter_id (forces replacement)" in result.output
        assert "Aborted" in result.output
        assert cli_backend.store.ids() == [created["id"]]

    def test_replace_with_yes(self, runner, cli_backend, document_file):
        created = apply_json(runner, document_file(DOCUMENT))
        moved = document_file({**DOCUMENT, "datacenter_id": "aws-eu-west-1"})

        replaced = apply_json(runner, moved, "--id", created["id"], "--yes")

        assert replaced["id"] != created["id"]
        assert cli_backend.store.ids() == [replaced["id"]]

    def test_update_unknown_service(self, runner, document_file):
        result = runner.invoke(
            cli, BASE_ARGS + ["apply", document_file(DOCUMENT), "--id", "missing"]
        )

        assert result.exit_code == 1
        assert "not found" in result.output

    def test_invalid_document(self, runner, document_file):
        result = runner.invoke(
            cli, BASE_ARGS + ["apply", document_file({"name": "only-a-name"})]
        )

        assert result.exit_code == 1
        assert "required property" in result.output

    def test_blank_name(self, runner, cli_backend, document_file):
        result = runner.invoke(
            cli, BASE_ARGS + ["apply", document_file({**DOCUMENT, "name": "  "})]
        )

        assert result.exit_code == 1
        assert "Error:" in result.output
        assert len(cli_backend.store) == 0

    @pytest.mark.parametrize(
        "name,content",
        [("service.yaml", "name: [unclosed\n"), ("service.json", '{"name": ')],
    )
    def test_unparseable_document(self, runner, tmp_path, name, content):
        path = tmp_path / name
        path.write_text(content)

        result = runner.invoke(cli, BASE_ARGS + ["apply", str(path)])

        assert result.exit_code == 1
        assert f"Cannot parse {path}" in result.output

    def test_configuration_from_environment(self, runner, document_file):
        env = {
            "MISSIONCONTROL_HOST": "http://env-host",
            "MISSIONCONTROL_TOKEN": "env-token",
            "POLLING_INTERVAL_DURATION": "10ms",
            "POLLING_TIMEOUT_DURATION": "5s",
        }

        result = runner.invoke(cli, ["apply", document_file(DOCUMENT)], env=env)

        assert result.exit_code == 0, result.output
        assert get_config().provider.host == "http://env-host"
        assert get_config().provider.polling_interval == "10ms"

    def test_missing_host(self, runner, document_file):
        result = runner.invoke(
            cli,
            ["apply", document_file(DOCUMENT)],
            env={"MISSIONCONTROL_HOST": "", "MISSIONCONTROL_TOKEN": ""},
        )

        assert result.exit_code == 1
        assert "Missing Mission Control API host" in result.output


class TestDescribeAndDelete:
    """Tests for the describe and delete commands."""

    def test_describe(self, runner, document_file):
        created = apply_json(runner, document_file(DOCUMENT))

        result = runner.invoke(
            cli, BASE_ARGS + ["describe", created["id"], "-o", "yaml"]
        )

        assert result.exit_code == 0
        assert yaml.safe_load(result.output)["id"] == created["id"]

    def test_describe_table(self, runner, document_file):
        created = apply_json(runner, document_file(DOCUMENT))

        result = runner.invoke(cli, BASE_ARGS + ["describe", created["id"]])

        assert result.exit_code == 0
        assert "datacenter_id" in result.output
        assert "aks-germanywestcentral" in result.output

    def test_describe_not_found(self, runner):
        result = runner.invoke(cli, BASE_ARGS + ["describe", "missing"])

        assert result.exit_code == 1
        assert "not found" in result.output

    def test_delete_is_idempotent(self, runner, cli_backend, document_file):
        created = apply_json(runner, document_file(DOCUMENT))

        for _ in range(2):
            result = runner.invoke(cli, BASE_ARGS + ["delete", created["id"], "--yes"])
            assert result.exit_code == 0
            assert f"Service {created['id']} deleted" in result.output

        assert len(cli_backend.store) == 0


class TestCarryForward:
    """Tests for carry_forward()."""

    def test_fills_server_defaults_only(self, current_service):
        desired = ServiceDescriptor(
            name="renamed",
            service_class_id="ENTERPRISE_250_STANDALONE",
            datacenter_id="aks-germanywestcentral",
            cluster_name="mine",
        )

        target = carry_forward(desired, current_service)

        assert target.name == "renamed"
        assert target.cluster_name == "mine"
        assert target.msg_vpn_name == "test-vpn1"
        assert target.custom_router_name == "test-router1"
        assert target.max_spool_usage == 20
        # The version keeps its own opt-out rule
        assert target.event_broker_version is None
