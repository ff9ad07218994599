"""Tests for cumulative/delta traffic views."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

from packtrack.core.content_state import (
    ContentState,
    CreateVersion,
    RestoreVersion,
    TrafficUpload,
    UpdateWorkingCopy,
    UploadSnapshot,
    apply_event,
)
from packtrack.core.delta_engine import (
    TrafficViewRequest,
    ViewMode,
    compute_delta,
    find_baseline,
    resolve_traffic_view,
    snapshot_view,
)
from packtrack.core.snapshot_ledger import TrafficSource
from packtrack.core.version_ledger import ConfigurationSnapshot

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _row(video_id, views, impressions=1000, watch=1.0):
    return TrafficSource(
        source_id=f"YT_RELATED.{video_id}",
        source_type="Suggested videos",
        video_id=video_id,
        views=views,
        impressions=impressions,
        watch_time_hours=watch,
    )


def _upload(views, video_id="vidA", impressions=1000):
    return TrafficUpload(sources=(_row(video_id, views, impressions),))


def _at(hours):
    return T0 + timedelta(hours=hours)


def _delta_views(state, snapshot):
    view = snapshot_view(snapshot, state.snapshots, state.ledger, ViewMode.DELTA)
    return sum(row.views for row in view.sources), view


def _published_state():
    state = ContentState(
        content_item_id=uuid4(),
        is_published=True,
        packaging=ConfigurationSnapshot(title="Original"),
    )
    return apply_event(state, CreateVersion(occurred_at=_at(0)))


def test_first_snapshot_delta_equals_cumulative():
    state = apply_event(_published_state(), UploadSnapshot(traffic=_upload(100), occurred_at=_at(1)))
    snapshot = state.snapshots.latest()

    views, view = _delta_views(state, snapshot)
    assert views == 100
    assert view.has_baseline is False
    assert view.sources == snapshot.sources


def test_delta_is_never_negative():
    current = [_row("vidA", 50, impressions=800, watch=1.0)]
    previous = [_row("vidA", 40, impressions=1000, watch=3.0)]

    (delta,) = compute_delta(current, previous)
    assert delta.views == 10
    assert delta.impressions == 0
    assert delta.watch_time_hours == 0.0
    assert delta.ctr == 0.0


def test_delta_drops_rows_without_new_views():
    current = [_row("vidA", 40), _row("vidB", 12, impressions=200)]
    previous = [_row("vidA", 40), _row("vidB", 2, impressions=100)]

    delta = compute_delta(current, previous)
    assert [row.video_id for row in delta] == ["vidB"]
    assert delta[0].views == 10
    assert delta[0].impressions == 100
    assert delta[0].ctr == 10.0


def test_sealed_switch_then_two_uploads():
    state = _published_state()
    state = apply_event(state, UploadSnapshot(traffic=_upload(100), occurred_at=_at(1)))
    state = apply_event(
        state,
        CreateVersion(
            configuration=ConfigurationSnapshot(title="New title"),
            seal=_upload(100),
            occurred_at=_at(2),
        ),
    )
    state = apply_event(state, UploadSnapshot(traffic=_upload(40), occurred_at=_at(3)))
    b = state.snapshots.latest()
    assert b.version == 2
    assert _delta_views(state, b)[0] == 40

    state = apply_event(state, UploadSnapshot(traffic=_upload(55), occurred_at=_at(4)))
    c = state.snapshots.latest()
    assert _delta_views(state, c)[0] == 15
    assert find_baseline(c, state.snapshots, state.ledger).id == b.id


def test_unsealed_restore_has_no_baseline():
    state = _published_state()
    state = apply_event(state, UploadSnapshot(traffic=_upload(100), occurred_at=_at(1)))
    state = apply_event(state, CreateVersion(seal=_upload(120), occurred_at=_at(2)))
    state = apply_event(state, UploadSnapshot(traffic=_upload(30), occurred_at=_at(3)))
    state = apply_event(
        state, RestoreVersion(version_number=1, seal_skipped=True, occurred_at=_at(4))
    )
    state = apply_event(state, UploadSnapshot(traffic=_upload(130), occurred_at=_at(5)))

    c = state.snapshots.latest()
    assert c.version == 1
    views, view = _delta_views(state, c)
    assert views == 130
    assert view.has_baseline is False


def test_sealed_restore_uses_previous_activation_as_baseline():
    state = _published_state()
    state = apply_event(state, UploadSnapshot(traffic=_upload(100), occurred_at=_at(1)))
    state = apply_event(state, CreateVersion(seal=_upload(120), occurred_at=_at(2)))
    state = apply_event(
        state, RestoreVersion(version_number=1, seal=_upload(30), occurred_at=_at(3))
    )
    state = apply_event(state, UploadSnapshot(traffic=_upload(150), occurred_at=_at(4)))

    c = state.snapshots.latest()
    views, view = _delta_views(state, c)
    assert view.has_baseline is True
    assert views == 30


def test_resolve_active_version_falls_back_to_working_copy():
    state = _published_state()
    state = state.model_copy(
        update={"working_copy": state.working_copy.model_copy(update={"sources": (_row("vidA", 7),)})}
    )
    view = resolve_traffic_view(
        state.ledger, state.snapshots, state.working_copy, TrafficViewRequest()
    )
    assert view.origin == "working_copy"
    assert view.version == 1


def test_resolve_unknown_snapshot_is_empty():
    state = _published_state()
    view = resolve_traffic_view(
        state.ledger,
        state.snapshots,
        state.working_copy,
        TrafficViewRequest(snapshot_id="snap_missing", mode=ViewMode.DELTA),
    )
    assert view.origin == "empty"
    assert view.sources == ()


def test_resolve_filters_by_period():
    state = _published_state()
    state = apply_event(state, UploadSnapshot(traffic=_upload(100), occurred_at=_at(1)))
    state = apply_event(state, CreateVersion(seal=_upload(110), occurred_at=_at(2)))
    state = apply_event(
        state, RestoreVersion(version_number=1, seal=_upload(20), occurred_at=_at(3))
    )
    state = apply_event(state, UploadSnapshot(traffic=_upload(170), occurred_at=_at(4)))

    older = resolve_traffic_view(
        state.ledger,
        state.snapshots,
        state.working_copy,
        TrafficViewRequest(version=1, period_index=1),
    )
    newer = resolve_traffic_view(
        state.ledger,
        state.snapshots,
        state.working_copy,
        TrafficViewRequest(version=1, period_index=0),
    )
    assert older.sources[0].views == 110
    assert newer.sources[0].views == 170


def test_resolve_closed_period_ignores_working_copy():
    state = ContentState(content_item_id=uuid4())
    state = apply_event(state, CreateVersion(occurred_at=_at(0)))
    state = apply_event(state, CreateVersion(occurred_at=_at(1)))
    state = apply_event(state, RestoreVersion(version_number=1, occurred_at=_at(2)))
    state = apply_event(
        state, UpdateWorkingCopy(traffic=_upload(999), occurred_at=_at(3))
    )

    closed = resolve_traffic_view(
        state.ledger,
        state.snapshots,
        state.working_copy,
        TrafficViewRequest(version=1, period_index=1),
    )
    assert closed.origin == "empty"
    assert closed.sources == ()

    current = resolve_traffic_view(
        state.ledger,
        state.snapshots,
        state.working_copy,
        TrafficViewRequest(version=1, period_index=0),
    )
    assert current.origin == "working_copy"
    assert current.sources[0].views == 999
