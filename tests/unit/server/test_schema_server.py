"""Tests for SchemaServer caching, resolution and lookups."""

import threading

import pytest

from tfpluginschema.config import Settings
from tfpluginschema.exceptions import ProviderNotFoundError, RPCError, SchemaNotFoundError
from tfpluginschema.plugin.wire import Generation
from tfpluginschema.registry.api import RegistryClient
from tfpluginschema.registry.request import ProviderRequest
from tfpluginschema.schema.translate import translate
from tfpluginschema.server import SchemaServer

from tests.helpers.doubles import CountingClientFactory
from tests.helpers.registry import BASE_URL, PLATFORM, FakeRegistry, make_zip
from tests.helpers.wire_builders import sample_response

VERSIONS = ["2.0.0", "3.0.0", "3.0.4", "3.1.0"]


@pytest.fixture
def registry():
    archive = make_zip(
        {
            "terraform-provider-random_v3.1.0": (b"#!/bin/sh\n", 0o755),
            "LICENSE": (b"MPL", 0o644),
        }
    )
    return FakeRegistry("hashicorp", "random", VERSIONS, archive=archive)


@pytest.fixture
def factory():
    return CountingClientFactory(translate(Generation.B, sample_response(Generation.B)))


@pytest.fixture
def server(registry, factory, tmp_path):
    client = RegistryClient(BASE_URL, http_client=registry.client(), platform_pair=PLATFORM)
    with SchemaServer(registry=client, client_factory=factory, temp_root=str(tmp_path)) as srv:
        yield srv


def _request(version=""):
    return ProviderRequest("hashicorp", "random", version)


class TestResolve:
    def test_exact_version_skips_registry(self, server, registry):
        assert server.resolve(_request("3.0.0")).version == "3.0.0"
        assert registry.version_calls == 0

    def test_leading_v_is_stripped(self, server):
        assert server.resolve(_request("v3.0.0")).version == "3.0.0"

    @pytest.mark.parametrize(
        "version,expected",
        [
            pytest.param("", "3.1.0", id="latest"),
            pytest.param("~>3.0.0", "3.0.4", id="pessimistic"),
            pytest.param(">=2.0.0,<3.0.0", "2.0.0", id="range"),
            pytest.param("not a constraint", "3.1.0", id="malformed"),
        ],
    )
    def test_constraint(self, server, version, expected):
        assert server.resolve(_request(version)).version == expected

    def test_versions_are_cached(self, server, registry):
        server.resolve(_request(""))
        server.resolve(_request("~>3.0"))

        assert registry.version_calls == 1
        assert [str(v) for v in server.available_versions(_request())] == VERSIONS

    def test_unknown_provider(self, server):
        with pytest.raises(ProviderNotFoundError):
            server.resolve(ProviderRequest("nobody", "nothing", ">=1.0"))


class TestDownloads:
    def test_get_extracts_executable(self, server, registry, tmp_path):
        path = server.get(_request("3.1.0"))

        assert path.name == "terraform-provider-random_v3.1.0"
        assert path.read_bytes() == b"#!/bin/sh\n"
        assert server.temp_dir.parent == tmp_path
        assert registry.archive_calls == 1

    def test_get_is_cached(self, server, registry):
        first = server.get(_request("3.1.0"))
        second = server.get(_request("v3.1.0"))

        assert first == second
        assert registry.download_info_calls == 1
        assert registry.archive_calls == 1

    def test_unknown_version(self, server):
        with pytest.raises(ProviderNotFoundError):
            server.get(_request("9.9.9"))


class TestSchemas:
    def test_schema_is_fetched_once(self, server, registry, factory):
        first = server.schema(_request())
        second = server.schema(_request("3.1.0"))

        assert first is second
        assert factory.schema_calls == 1
        assert factory.closed == 1
        assert registry.archive_calls == 1
        assert factory.executables[0].endswith("terraform-provider-random_v3.1.0")

    def test_schema_reuses_existing_download(self, server, registry, factory):
        server.get(_request("3.1.0"))
        server.schema(_request("3.1.0"))

        assert registry.archive_calls == 1
        assert factory.schema_calls == 1

    def test_concurrent_requests_share_one_fetch(self, registry, tmp_path):
        factory = CountingClientFactory(translate(Generation.A, sample_response(Generation.A)), delay=0.05)
        client = RegistryClient(BASE_URL, http_client=registry.client(), platform_pair=PLATFORM)
        results = []
        errors = []

        with SchemaServer(registry=client, client_factory=factory, temp_root=str(tmp_path)) as server:

            def worker():
                try:
                    results.append(server.resource_schema(_request("~>3.0"), "example_thing"))
                except Exception as exc:
                    errors.append(exc)

            threads = [threading.Thread(target=worker) for _ in range(8)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()

        assert errors == []
        assert len(results) == 8
        assert all(r is results[0] for r in results)
        assert registry.version_calls == 1
        assert registry.download_info_calls == 1
        assert registry.archive_calls == 1
        assert factory.schema_calls == 1

    def test_client_closed_and_nothing_cached_on_error(self, registry, tmp_path):
        factory = CountingClientFactory(None, error=RPCError("schema call failed"))
        client = RegistryClient(BASE_URL, http_client=registry.client(), platform_pair=PLATFORM)

        with SchemaServer(registry=client, client_factory=factory, temp_root=str(tmp_path)) as server:
            for _ in range(2):
                with pytest.raises(RPCError):
                    server.schema(_request("3.1.0"))

        assert factory.schema_calls == 2
        assert factory.closed == 2
        # The download itself succeeded and stays cached.
        assert registry.archive_calls == 1


class TestLookups:
    def test_named_schemas(self, server):
        request = _request("3.1.0")

        assert server.resource_schema(request, "example_thing").version == 2
        assert "name" in server.data_source_schema(request, "example_lookup").attributes
        assert "value" in server.ephemeral_resource_schema(request, "example_token").attributes
        assert server.function_schema(request, "parse_id").summary == "Parse an ID"
        assert "endpoint" in server.provider_schema(request).attributes

    @pytest.mark.parametrize(
        "method,kind",
        [
            ("resource_schema", "resource"),
            ("data_source_schema", "data source"),
            ("ephemeral_resource_schema", "ephemeral resource"),
            ("function_schema", "function"),
        ],
    )
    def test_missing_name(self, server, method, kind):
        with pytest.raises(SchemaNotFoundError) as excinfo:
            getattr(server, method)(_request("3.1.0"), "nope")

        assert excinfo.value.kind == kind
        assert excinfo.value.name == "nope"

    def test_lists(self, server):
        request = _request("3.1.0")

        assert server.list_resources(request) == ["example_thing"]
        assert server.list_data_sources(request) == ["example_lookup"]
        assert server.list_ephemeral_resources(request) == ["example_token"]
        assert server.list_functions(request) == ["parse_id"]

    def test_lists_of_absent_categories_are_empty(self, registry, tmp_path):
        from tfpluginschema.schema.models import CanonicalSchema

        factory = CountingClientFactory(CanonicalSchema())
        client = RegistryClient(BASE_URL, http_client=registry.client(), platform_pair=PLATFORM)

        with SchemaServer(registry=client, client_factory=factory, temp_root=str(tmp_path)) as server:
            assert server.list_resources(_request("3.1.0")) == []
            assert server.list_functions(_request("3.1.0")) == []
            assert server.provider_schema(_request("3.1.0")) is None


class TestCleanup:
    def test_removes_downloads_and_keeps_schemas(self, server, registry, factory):
        server.schema(_request("3.1.0"))
        temp_dir = server.temp_dir
        assert temp_dir.exists()

        server.cleanup()

        assert not temp_dir.exists()
        assert server.temp_dir is None
        server.schema(_request("3.1.0"))
        assert factory.schema_calls == 1
        assert registry.archive_calls == 1

    def test_downloads_again_after_cleanup(self, server, registry):
        server.get(_request("3.1.0"))
        server.cleanup()

        path = server.get(_request("3.1.0"))

        assert path.exists()
        assert registry.archive_calls == 2

    def test_repeated_cleanup_is_a_no_op(self, server):
        server.cleanup()
        server.cleanup()

        assert server.temp_dir is None


class TestFromSettings:
    def test_applies_settings(self, tmp_path):
        settings = Settings.model_validate(
            {
                "registry": {"base_url": BASE_URL},
                "plugin": {"rpc_timeout": 5, "executable_prefix": "tofu-provider-"},
                "cache": {"temp_root": str(tmp_path)},
            }
        )

        with SchemaServer.from_settings(settings) as server:
            assert server._registry.base_url == BASE_URL
            assert server._rpc_timeout == 5
            assert server._executable_prefix == "tofu-provider-"
            assert server._temp_root == str(tmp_path)
