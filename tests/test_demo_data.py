"""Tests for demo seeding."""
from organflow.core.config import Settings
from organflow.main import build_manager
from organflow.models.organ import OrganStatus
from organflow.models.transfer_request import RequestStatus
from organflow.services.demo_data import DEMO_ORGANS, seed_demo_data


def test_seed_covers_every_status(manager):
    assert seed_demo_data(manager) == len(DEMO_ORGANS)

    statuses = [o.status for o in manager.list_organs()]
    assert statuses == [
        OrganStatus.TRANSFERRED,
        OrganStatus.TRANSPLANTED,
        OrganStatus.DONATED,
        OrganStatus.REQUESTED,
        OrganStatus.TRANSFERRED,
        OrganStatus.TRANSPLANTED,
    ]
    pending = manager.list_requests(RequestStatus.PENDING)
    assert len(pending) == 1
    assert pending[0].organ_id == 3
    assert all(o.token_uri for o in manager.list_organs())


def test_build_manager_seeds_empty_state_once(tmp_path):
    app_settings = Settings(DATABASE_URL="", SNAPSHOT_FILE=str(tmp_path / "state.json"), SEED_DEMO_DATA=True)

    first = build_manager(app_settings)
    assert len(first.list_organs()) == len(DEMO_ORGANS)
    first.close()

    second = build_manager(app_settings)
    try:
        assert len(second.list_organs()) == len(DEMO_ORGANS)
    finally:
        second.close()
