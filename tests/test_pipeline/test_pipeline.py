"""
Tests para el Install Pipeline.

Cubre:
- Camino feliz: fetch, record, start con el nombre canónico
- Stop previo (best-effort), fallo de record (best-effort)
- InstallFailed / StartFailed propagados
- Reinstalar deja un único proceso; instalaciones concurrentes del mismo nombre
"""

import asyncio
from pathlib import Path

import pytest

from skillmgr.errors import InstallFailed, InstallInProgress, StartFailed
from skillmgr.skills.pipeline import InstallPipeline
from skillmgr.supervisor import ProcessSupervisor, SupervisorState


@pytest.fixture
def supervisor(fake_backend, tmp_path: Path) -> ProcessSupervisor:
    return ProcessSupervisor(fake_backend, SupervisorState(), tmp_path / "logs")


@pytest.fixture
def pipeline(fake_installer, supervisor, history, tmp_path: Path) -> InstallPipeline:
    return InstallPipeline(fake_installer, supervisor, history, tmp_path / "skills")


class TestInstallHappyPath:
    def test_installs_and_starts_under_canonical_name(self, pipeline, fake_backend, history, tmp_path):
        messages: list[str] = []
        outcome = asyncio.run(pipeline.install("acme/greeter", notify=messages.append))

        assert outcome.name == "acme-greeter"
        assert outcome.path == tmp_path / "skills" / "acme-greeter"
        assert [s.name for s in fake_backend.started] == ["acme-greeter"]
        assert fake_backend.started[0].cwd == outcome.path
        assert fake_backend.started[0].log_file == tmp_path / "logs" / "acme-greeter.log"
        assert outcome.process.pid == fake_backend.running["acme-greeter"]
        assert outcome.stop.ok and outcome.record.ok

    def test_records_installation(self, pipeline, history, tmp_path):
        asyncio.run(pipeline.install("acme/greeter"))
        assert len(history.records) == 1
        record = history.records[0]
        assert record.package_identifier == "acme/greeter"
        assert record.installed_path == tmp_path / "skills" / "acme-greeter"

    def test_progress_messages(self, pipeline):
        messages: list[str] = []
        asyncio.run(pipeline.install("acme/greeter", notify=messages.append))
        assert messages == [
            "Installing acme/greeter...",
            "Starting acme/greeter...",
            "acme/greeter is running",
        ]


class TestBestEffortSteps:
    def test_stops_running_instance_first(self, pipeline, fake_backend):
        async def scenario():
            await pipeline.install("acme/greeter")
            return await pipeline.install("acme/greeter")

        outcome = asyncio.run(scenario())
        assert fake_backend.events == [
            "start:acme-greeter",
            "stop:acme-greeter",
            "start:acme-greeter",
        ]
        assert outcome.stop.ok

    def test_stop_failure_does_not_abort(self, pipeline, fake_backend):
        messages: list[str] = []

        async def scenario():
            await pipeline.install("acme/greeter")
            fake_backend.fail_stop.add("acme-greeter")
            return await pipeline.install("acme/greeter", notify=messages.append)

        outcome = asyncio.run(scenario())
        assert not outcome.stop.ok
        assert "refused to die" in outcome.stop.error
        assert any("Could not stop acme-greeter" in m for m in messages)
        assert fake_backend.events[-1] == "start:acme-greeter"

    def test_record_failure_does_not_abort(self, pipeline, history, fake_backend):
        history.fail = True
        messages: list[str] = []
        outcome = asyncio.run(pipeline.install("acme/greeter", notify=messages.append))
        assert not outcome.record.ok
        assert "store down" in outcome.record.error
        assert any("could not record" in m for m in messages)
        assert "acme-greeter" in fake_backend.running


class TestFailures:
    def test_install_failure_is_fatal(self, pipeline, fake_installer, fake_backend):
        fake_installer.fail_with = "repository not found"
        with pytest.raises(InstallFailed, match="repository not found"):
            asyncio.run(pipeline.install("acme/greeter"))
        assert fake_backend.started == []
        assert not pipeline.in_progress("acme-greeter")

    def test_unresolvable_identifier(self, pipeline, fake_installer):
        with pytest.raises(InstallFailed):
            asyncio.run(pipeline.install("greeter"))
        assert fake_installer.calls == []

    def test_start_failure(self, pipeline, fake_backend, history):
        fake_backend.fail_start.add("acme-greeter")
        with pytest.raises(StartFailed):
            asyncio.run(pipeline.install("acme/greeter"))
        # The package stays installed and recorded
        assert len(history.records) == 1
        assert not pipeline.in_progress("acme-greeter")


class TestSerialization:
    def test_reinstall_leaves_one_process(self, pipeline, supervisor):
        async def scenario():
            await pipeline.install("acme/greeter")
            await pipeline.install("acme/greeter")

        asyncio.run(scenario())
        assert [p.name for p in supervisor.running()] == ["acme-greeter"]

    def test_concurrent_same_name_is_rejected(self, pipeline, fake_backend):
        async def scenario():
            first = asyncio.create_task(pipeline.install("acme/greeter"))
            await asyncio.sleep(0)
            assert pipeline.in_progress("acme-greeter")
            with pytest.raises(InstallInProgress):
                await pipeline.install("acme/greeter")
            await first

        asyncio.run(scenario())
        assert fake_backend.events == ["start:acme-greeter"]

    def test_different_names_run_concurrently(self, pipeline, supervisor):
        async def scenario():
            await asyncio.gather(
                pipeline.install("acme/greeter"),
                pipeline.install("acme/weather"),
            )

        asyncio.run(scenario())
        assert sorted(p.name for p in supervisor.running()) == ["acme-greeter", "acme-weather"]
