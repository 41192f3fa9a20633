from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from backup_relay.config import get_settings
from backup_relay.main import app

SAMPLE_REPORT = """Details
=======
VMID    NAME    STATUS    TIME    SIZE    FILENAME
100    vm1    ok    0:10    1G    vzdump-qemu-100.vma.zst
101    vm2    failed    0:05    2G    vzdump-qemu-101.vma.zst

Total running time: 0:15
Total size: 3G

Logs
====
100: 2024-05-01 02:00:01 INFO: Starting Backup of VM 100 (qemu)
100: 2024-05-01 02:00:11 INFO: Finished Backup of VM 100 (00:00:10)
101: 2024-05-01 02:00:12 ERROR: Backup of VM 101 failed
101: 2024-05-01 02:00:12 INFO: Failed at 2024-05-01 02:00:17
999: 2024-05-01 02:00:18 INFO: unrelated guest
"""


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def logs_dir(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    path = tmp_path / "logs"
    monkeypatch.setenv("LOGS_DIR", str(path))
    return path


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch, logs_dir: Path) -> Iterator[TestClient]:
    monkeypatch.setenv("DISCORD_WEBHOOK_URL", "https://discord.test/api/webhooks/1/token")

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def sample_report() -> str:
    return SAMPLE_REPORT
