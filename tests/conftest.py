import os

import pytest

from tests.helpers.analysis_doubles import make_chunk


def pytest_addoption(parser):
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="Run slow stress tests",
    )


def pytest_collection_modifyitems(config, items):
    run_slow = (
        config.getoption("--run-slow")
        or os.getenv("CODEWEAVE_RUN_SLOW_TESTS") == "1"
    )
    if not run_slow:
        skip_slow = pytest.mark.skip(
            reason="slow tests skipped (use --run-slow or CODEWEAVE_RUN_SLOW_TESTS=1)"
        )
        for item in items:
            if "slow" in item.keywords:
                item.add_marker(skip_slow)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Ensure tests run without CODEWEAVE_* overrides from the host."""
    for k in [k for k in os.environ if k.startswith("CODEWEAVE_")]:
        monkeypatch.delenv(k, raising=False)
    yield


@pytest.fixture
def chunks():
    """Five low-priority chunks with increasing complexity."""
    return [make_chunk(f"chunk-{i}", complexity=float(i + 1)) for i in range(5)]
