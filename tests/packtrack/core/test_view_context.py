"""Tests for the traffic view session."""

import asyncio

from packtrack.core.delta_engine import TrafficView, ViewMode
from packtrack.core.view_context import ViewSession


def test_context_key_tracks_selection():
    session = ViewSession()
    assert session.context_key == "version-current-period-None:cumulative"

    session.select_version(3, period_index=1)
    session.set_view_mode(ViewMode.DELTA)
    assert session.context_key == "version-3-period-1:delta"

    session.select_snapshot("snap_1_v3")
    assert session.context_key == "snapshot-snap_1_v3:delta"

    session.select_version("draft")
    assert session.snapshot_id is None
    assert session.context_key == "version-draft-period-None:delta"


def test_load_commits_result_for_unchanged_context():
    session = ViewSession()
    session.select_version(1)

    async def loader(request):
        assert request.version == 1
        return TrafficView(version=1, origin="snapshot")

    view = asyncio.run(session.load(loader))
    assert view.origin == "snapshot"
    assert session.view is view


def test_load_discards_result_when_context_changed():
    session = ViewSession()
    session.select_version(1)

    async def loader(request):
        # The user switches versions while this load is in flight
        session.select_version(2)
        return TrafficView(version=1, origin="snapshot")

    assert asyncio.run(session.load(loader)) is None
    assert session.view is None
