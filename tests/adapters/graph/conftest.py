from __future__ import annotations

from collections.abc import Callable  # noqa: TC003

import pytest

from devretire.adapters.graph import GraphDirectory
from devretire.config import GraphConfig, build_graph_resilience
from tests.support.graph import GRAPH_TEST_URL, Handler, make_client_factory


@pytest.fixture
def graph_config() -> GraphConfig:
    return GraphConfig(
        access_token="token",
        resilience=build_graph_resilience("token", base_url=GRAPH_TEST_URL),
    )


@pytest.fixture
def make_directory(graph_config: GraphConfig) -> Callable[[Handler], GraphDirectory]:
    def build(handler: Handler) -> GraphDirectory:
        return GraphDirectory(config=graph_config, client_factory=make_client_factory(handler))

    return build
