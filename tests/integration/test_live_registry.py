"""End-to-end schema fetch against the public registry.

Downloads and runs a real provider binary, so it only runs when
RUN_LIVE_REGISTRY_TESTS is set.
"""

import os

import pytest

from tfpluginschema import ProviderRequest, SchemaServer
from tfpluginschema.schema.types import NUMBER

pytestmark = pytest.mark.skipif(
    not os.environ.get("RUN_LIVE_REGISTRY_TESTS"),
    reason="set RUN_LIVE_REGISTRY_TESTS=1 to run against the public registry",
)


def test_random_provider_schema(tmp_path):
    with SchemaServer(temp_root=str(tmp_path)) as server:
        request = ProviderRequest("hashicorp", "random", "~>3.6")

        block = server.resource_schema(request, "random_string")

        assert block.attributes["length"].required is True
        assert block.attributes["length"].type == NUMBER
        assert "random_password" in server.list_resources(request)

    assert list(tmp_path.iterdir()) == []
