"""End-to-end tests for the DistributedAnalyzer facade."""

import pytest

from codeweave.analyzers import FileInventoryAnalyzer, import_dependency_lookup
from codeweave.core.config import AnalysisConfig
from codeweave.services import DistributedAnalyzer
from tests.helpers.analysis_doubles import RecordingAnalyzer, make_chunk, make_result


def small_config(**pool) -> AnalysisConfig:
    return AnalysisConfig().with_overrides(
        {"planner": {"chunk_size_target": 2}, "pool": {"max_workers": 2, **pool}}
    )


@pytest.fixture
def source_tree(tmp_path):
    files = {
        "app/main.py": "from .service import run\n\nif __name__ == '__main__':\n    run()\n",
        "app/service.py": "from .store import save\n\ndef run():\n    save()\n",
        "app/store.py": "import json\n\ndef save():\n    return json.dumps({})\n",
        "web/index.ts": "import { api } from './api';\napi();\n",
        "web/api.ts": "export function api() {}\n",
    }
    paths = []
    for rel, content in files.items():
        path = tmp_path / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        paths.append(str(path))
    return paths


class TestDistributedAnalyzer:
    """Planner, pool and merger wired together."""

    @pytest.mark.asyncio
    async def test_analyze_real_files(self, source_tree):
        analyzer = DistributedAnalyzer(
            FileInventoryAnalyzer(),
            config=small_config(),
            dependency_lookup=import_dependency_lookup,
        )

        report = await analyzer.analyze(source_tree)

        assert report.total_chunks == len(report.chunks) == 3
        assert report.succeeded_chunks == 3
        assert report.failed_chunks == {}
        assert report.summary_line == "3/3 chunks succeeded"
        file_nodes = [n for n in report.combined.nodes if n.type == "file"]
        assert len(file_nodes) == 5
        assert report.combined.total_patterns == 1
        assert 0.0 <= report.combined.parallel_efficiency <= 1.0
        assert report.metrics.completed_chunks == 3

    @pytest.mark.asyncio
    async def test_partial_failure_is_reported_not_raised(self):
        analyze = RecordingAnalyzer(fail_times={"chunk-0": -1})
        analyzer = DistributedAnalyzer(
            analyze,
            config=small_config(retry_attempts=1),
            size_of=lambda path: 1000,
        )
        files = [f"mod{i}.py" for i in range(6)]
        chunks = analyzer.create_chunks(files)

        report = await analyzer.analyze_chunks(chunks)

        assert report.total_chunks == 3
        assert report.succeeded_chunks == 2
        assert set(report.failed_chunks) == {"chunk-0"}
        assert report.failed_chunks["chunk-0"].attempts == 1
        assert analyze.invocations("chunk-0") == 2
        assert report.summary_line == "2/3 chunks succeeded"

    @pytest.mark.asyncio
    async def test_cancelled_run_counts_only_analyzed_chunks(self):
        analyzer: DistributedAnalyzer

        async def analyze(chunk):
            analyzer.cancel()
            return make_result(chunk.id, f"f:{chunk.id}")

        analyzer = DistributedAnalyzer(
            analyze,
            config=AnalysisConfig().with_overrides({"pool": {"max_workers": 1}}),
        )
        chunks = [make_chunk(f"chunk-{i}") for i in range(5)]

        report = await analyzer.analyze_chunks(chunks)

        assert report.total_chunks == 5
        assert report.succeeded_chunks == 1
        assert report.failed_chunks == {}
        assert report.skipped_chunks == 4
        assert report.summary_line == "1/5 chunks succeeded"
        assert report.to_dict()["skipped_chunks"] == 4

    @pytest.mark.asyncio
    async def test_subscribers_receive_pool_events(self):
        analyzer = DistributedAnalyzer(
            RecordingAnalyzer(), config=small_config(), size_of=lambda path: 1000
        )
        completed: list[str] = []
        analyzer.subscribe("chunk_complete", lambda result: completed.append(result.chunk_id))

        report = await analyzer.analyze(["a.py", "b.py", "c.py"])

        assert sorted(completed) == sorted(c.id for c in report.chunks)

    @pytest.mark.asyncio
    async def test_empty_file_list(self):
        analyzer = DistributedAnalyzer(RecordingAnalyzer(), config=small_config())

        report = await analyzer.analyze([])

        assert report.total_chunks == 0
        assert report.summary_line == "0/0 chunks succeeded"
        assert report.combined.total_nodes == 0

    @pytest.mark.asyncio
    async def test_report_to_dict(self):
        analyzer = DistributedAnalyzer(
            RecordingAnalyzer(fail_times={"chunk-0": -1}),
            config=small_config(retry_attempts=0),
            size_of=lambda path: 1000,
        )

        report = await analyzer.analyze(["x.py", "y.py"])
        data = report.to_dict()

        assert data["summary"] == "0/1 chunks succeeded"
        assert data["failed_chunks"][0]["chunk_id"] == "chunk-0"
        assert data["failed_chunks"][0]["attempts"] == 0
        assert data["metrics"]["total_chunks"] == 1
        assert data["chunks"][0]["files"] == ["x.py", "y.py"]
