"""Shared fixtures."""
import pytest

from sf_query.core.config import QueryConfig
from sf_query.core.telemetry import TelemetryRecorder, set_recorder

from tests.fakes import ManualScheduler, ScriptedDataSource


@pytest.fixture(autouse=True)
def recorder():
    """Fresh telemetry recorder per test, with stats collection on."""
    rec = TelemetryRecorder(collect_stats=True)
    set_recorder(rec)
    yield rec
    set_recorder(TelemetryRecorder())


@pytest.fixture
def config():
    return QueryConfig(subgraph_endpoint="http://subgraph.test/graphql")


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def source():
    return ScriptedDataSource()
