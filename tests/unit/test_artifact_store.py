import pytest

from page_assembler.domain.errors import AccessDeniedError, NotFoundError
from page_assembler.infrastructure.storage import LocalFileStore
from page_assembler.services.artifact_store import ArtifactStore


class FakeClock:
    def __init__(self) -> None:
        self.now = 1_000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def artifacts(tmp_path, scheduler, clock) -> ArtifactStore:
    return ArtifactStore(
        LocalFileStore(tmp_path / "outputs"), retention_seconds=5, scheduler=scheduler, clock=clock
    )


@pytest.mark.unit
def test_download_succeeds_once_then_expires(artifacts, scheduler) -> None:
    artifact = artifacts.save("final report.pdf", b"%PDF-data")
    locator = artifacts.locator_for(artifact.artifact_id)

    name, data = artifacts.resolve(locator)

    assert name == "final report.pdf"
    assert data == b"%PDF-data"
    assert [delay for delay, _ in scheduler.pending] == [5]
    with pytest.raises(NotFoundError):
        artifacts.resolve(locator)

    scheduler.run_all()

    assert artifacts.store.keys() == []
    assert not artifacts.contains(artifact.artifact_id)
    with pytest.raises(NotFoundError):
        artifacts.resolve(locator)


@pytest.mark.unit
def test_forced_expiry_before_download(artifacts) -> None:
    artifact = artifacts.save("merged.pdf", b"%PDF")

    assert artifacts.expire(artifact.artifact_id) is True
    assert artifacts.expire(artifact.artifact_id) is False
    with pytest.raises(NotFoundError):
        artifacts.resolve(artifact.artifact_id)


@pytest.mark.unit
@pytest.mark.parametrize(
    "locator", ["downloads/../uploads/x.pdf", "../../etc/passwd", "downloads//etc/passwd"]
)
def test_traversal_locator_is_denied(artifacts, tmp_path, locator) -> None:
    (tmp_path / "uploads").mkdir()
    (tmp_path / "uploads" / "x.pdf").write_bytes(b"private")

    with pytest.raises(AccessDeniedError):
        artifacts.resolve(locator)


@pytest.mark.unit
def test_purge_removes_only_stale_undelivered(artifacts, clock) -> None:
    old = artifacts.save("old.pdf", b"1")
    clock.now += 600
    fresh = artifacts.save("fresh.pdf", b"2")

    purged = artifacts.purge_older_than(300)

    assert purged == [old.artifact_id]
    assert artifacts.store.keys() == [fresh.artifact_id]
