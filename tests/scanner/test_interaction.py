"""
Unit tests for interaction module.

Drag scenarios run against synthetic canvases from conftest.py with a
hand-advanced clock so pointer speed is deterministic.
"""

import numpy as np
import pytest

from src.scanner import interaction
from src.scanner.interaction import (
    INITIAL_SPEED,
    InteractionController,
    PointerEvent,
    PointerEventBus,
)
from src.scanner.types import MagnifierAnchor, Point, SnapKind, ViewTransform


@pytest.fixture
def edge_controller(soft_edge_image, scanner_config, fake_clock):
    """
    Corner 0 near the soft vertical edge at x = 49.5.

    The parallelogram prediction for corner 0 is (5, 5), far from the edge.
    """
    quad = [Point(45, 50), Point(95, 5), Point(95, 95), Point(5, 95)]
    return InteractionController(
        soft_edge_image, quad, config=scanner_config, clock=fake_clock
    )


@pytest.fixture
def plain_controller(uniform_image, scanner_config, fake_clock):
    quad = [Point(10, 10), Point(90, 10), Point(90, 90), Point(10, 90)]
    return InteractionController(
        uniform_image, quad, config=scanner_config, clock=fake_clock
    )


class TestSnapping:
    """Snap target selection on pointer move."""

    def test_first_move_skips_line_snap(self, edge_controller):
        """No previous sample means the initial speed, too fast for line snap."""
        assert INITIAL_SPEED >= 0.8
        edge_controller.begin_drag(0)

        state = edge_controller.move(45, 50)

        assert state.kind == SnapKind.NONE
        assert edge_controller.quad[0] == Point(45, 50)

    def test_slow_move_snaps_to_line(self, edge_controller, fake_clock):
        edge_controller.begin_drag(0)
        edge_controller.move(45, 50)

        fake_clock.advance(10)
        state = edge_controller.move(45, 51)  # 0.1 px/ms

        assert state.kind == SnapKind.LINE
        assert edge_controller.quad[0].x == pytest.approx(49.5)
        assert state.guide_angles == [92.5]

    def test_fast_move_skips_line_snap(self, edge_controller, fake_clock, monkeypatch):
        calls = []
        original = interaction.snap_to_edge

        def spy(*args, **kwargs):
            calls.append(args)
            return original(*args, **kwargs)

        monkeypatch.setattr(interaction, "snap_to_edge", spy)

        edge_controller.begin_drag(0)
        edge_controller.move(45, 50)
        fake_clock.advance(1)
        state = edge_controller.move(45, 55)  # 5 px/ms

        assert calls == []
        assert state.kind == SnapKind.NONE
        assert edge_controller.quad[0] == Point(45, 55)

    def test_speed_uses_unclamped_pointer(self, edge_controller, fake_clock):
        """Pointer travel outside the image still counts towards speed."""
        edge_controller.begin_drag(0)
        edge_controller.move(45, 300)
        fake_clock.advance(10)
        state = edge_controller.move(45, 350)  # 5 px/ms, both clamped to y = 100

        assert state.kind == SnapKind.NONE
        assert edge_controller.quad[0] == Point(45, 100)

    def test_geometric_snap(self, plain_controller):
        """Close to the parallelogram prediction the corner jumps onto it."""
        plain_controller.begin_drag(2)

        state = plain_controller.move(80, 85)

        assert state.kind == SnapKind.CORNER
        assert state.geometric_ghost == Point(90, 90)
        assert plain_controller.quad[2] == Point(90, 90)

    def test_geometric_snap_takes_priority(
        self, black_square_image, scanner_config, fake_clock, monkeypatch
    ):
        monkeypatch.setattr(
            interaction,
            "find_strongest_corner",
            lambda *args, **kwargs: pytest.fail("corner detector should not run"),
        )
        quad = [Point(40, 40), Point(79, 40), Point(79, 79), Point(40, 79)]
        controller = InteractionController(
            black_square_image, quad, config=scanner_config, clock=fake_clock
        )
        controller.begin_drag(0)

        state = controller.move(45, 44)

        assert state.kind == SnapKind.CORNER
        assert controller.quad[0] == Point(40, 40)

    def test_corner_snap(self, black_square_image, scanner_config, fake_clock):
        quad = [Point(42, 43), Point(110, 5), Point(110, 110), Point(5, 110)]
        controller = InteractionController(
            black_square_image, quad, config=scanner_config, clock=fake_clock
        )
        controller.begin_drag(0)

        state = controller.move(42, 43)

        assert state.kind == SnapKind.CORNER
        assert controller.quad[0] == Point(40, 40)
        assert state.geometric_ghost == Point(5, 5)
        assert sorted(state.guide_angles) == [2.5, 92.5]

    def test_no_snap_on_featureless_region(self, plain_controller):
        plain_controller.begin_drag(0)

        state = plain_controller.move(40, 45)

        assert state.kind == SnapKind.NONE
        assert plain_controller.quad[0] == Point(40, 45)
        assert state.guide_angles == [0.0, 90.0]

    def test_snapping_disabled(self, edge_controller, fake_clock):
        edge_controller.set_snapping(False)
        edge_controller.begin_drag(0)
        edge_controller.move(45, 50)
        fake_clock.advance(10)

        state = edge_controller.move(45, 51)

        assert state.kind == SnapKind.NONE
        assert state.geometric_ghost is None
        assert edge_controller.quad[0] == Point(45, 51)
        assert state.guide_angles == [92.5]

    def test_point_is_clamped_to_image(self, plain_controller):
        plain_controller.set_snapping(False)
        plain_controller.begin_drag(1)

        plain_controller.move(-20, 150)

        assert plain_controller.quad[1] == Point(0, 100)


class TestViewDependence:
    """Radius, threshold and coordinate conversion follow the zoom level."""

    @pytest.mark.parametrize(
        "scale, radius, threshold",
        [(1.0, 25, 40), (0.5, 30, 50), (2.0, 12.5, 20), (10.0, 5, 10)],
    )
    def test_radius_and_threshold(self, plain_controller, scale, radius, threshold):
        plain_controller.set_transform(ViewTransform(scale=scale))

        assert plain_controller.dynamic_radius() == pytest.approx(radius)
        assert plain_controller.geo_threshold() == pytest.approx(threshold)

    def test_screen_to_image_conversion(self, plain_controller):
        plain_controller.set_snapping(False)
        plain_controller.set_transform(ViewTransform(x=10, y=20, scale=2))
        plain_controller.begin_drag(0)

        plain_controller.move(110, 120)

        assert plain_controller.quad[0] == Point(50, 50)

    def test_magnifier_above_pointer(self, plain_controller):
        plain_controller.begin_drag(0)
        plain_controller.move(30, 300)

        assert plain_controller.magnifier == MagnifierAnchor(top=200, left=30)

    def test_magnifier_flips_near_top(self, plain_controller):
        plain_controller.begin_drag(0)
        plain_controller.move(30, 40)

        assert plain_controller.magnifier == MagnifierAnchor(top=140, left=30)

    def test_corner_snap_at_fractional_zoom(self, scanner_config, fake_clock):
        """At scale 1.075 the search radius stays 25 / 1.075, not 23."""
        image = np.full((100, 100, 4), 255, dtype=np.uint8)
        image[45:70, 25:60, :3] = 0  # top-left corner at (25, 45)
        quad = [Point(26, 3), Point(95, 60), Point(95, 95), Point(70, 95)]
        controller = InteractionController(
            image,
            quad,
            transform=ViewTransform(scale=1.075),
            config=scanner_config,
            clock=fake_clock,
        )
        assert controller.dynamic_radius() == pytest.approx(25 / 1.075)
        controller.begin_drag(0)

        state = controller.move(26.2 * 1.075, 2.9 * 1.075)

        assert state.kind == SnapKind.CORNER
        assert controller.quad[0] == Point(25, 45)


class TestDragLifecycle:
    """Begin/end of drags and pointer listener bookkeeping."""

    def test_end_drag_resets_feedback(self, plain_controller):
        plain_controller.begin_drag(2)
        plain_controller.move(80, 85)

        plain_controller.end_drag()

        assert plain_controller.active_index is None
        assert plain_controller.session is None
        assert plain_controller.snap_state.kind == SnapKind.NONE
        assert plain_controller.snap_state.geometric_ghost is None
        assert plain_controller.magnifier is None
        # The committed point stays
        assert plain_controller.quad[2] == Point(90, 90)

    def test_end_drag_when_idle_is_noop(self, plain_controller):
        plain_controller.end_drag()
        assert plain_controller.active_index is None

    def test_move_without_drag_changes_nothing(self, plain_controller):
        before = list(plain_controller.quad)
        plain_controller.move(50, 50)
        assert plain_controller.quad == before

    def test_invalid_index(self, plain_controller):
        with pytest.raises(ValueError, match="Corner index"):
            plain_controller.begin_drag(4)

    def test_second_drag_rejected(self, plain_controller):
        plain_controller.begin_drag(0)
        with pytest.raises(RuntimeError, match="already being dragged"):
            plain_controller.begin_drag(1)

    def test_drag_rejected_during_gesture(self, plain_controller):
        plain_controller.begin_gesture()
        with pytest.raises(RuntimeError, match="pan/zoom"):
            plain_controller.begin_drag(0)

        plain_controller.end_gesture()
        plain_controller.begin_drag(0)
        assert plain_controller.active_index == 0

    @pytest.mark.parametrize("end_kind", [PointerEventBus.UP, PointerEventBus.CANCEL])
    def test_listeners_removed_on_pointer_end(self, plain_controller, end_kind):
        events = PointerEventBus()
        plain_controller.set_snapping(False)

        with plain_controller.drag(3, events) as subscription:
            assert events.listener_count() == 3
            events.dispatch(PointerEventBus.MOVE, PointerEvent(20, 70))
            events.dispatch(end_kind)

            assert events.listener_count() == 0
            assert plain_controller.active_index is None
            assert subscription.closed

        assert plain_controller.quad[3] == Point(20, 70)

    def test_listeners_removed_on_exception(self, plain_controller):
        events = PointerEventBus()

        with pytest.raises(KeyError):
            with plain_controller.drag(0, events):
                raise KeyError("boom")

        assert events.listener_count() == 0
        assert plain_controller.active_index is None

    def test_moves_after_release_are_ignored(self, plain_controller):
        events = PointerEventBus()
        plain_controller.set_snapping(False)

        with plain_controller.drag(0, events):
            events.dispatch(PointerEventBus.UP)
        events.dispatch(PointerEventBus.MOVE, PointerEvent(60, 60))

        assert plain_controller.quad[0] == Point(10, 10)

    def test_second_finger_switches_to_gesture(self, plain_controller):
        events = PointerEventBus()

        with plain_controller.drag(0, events):
            events.dispatch(PointerEventBus.MOVE, PointerEvent(60, 60, pointer_count=2))

            assert plain_controller.gesture_active
            assert plain_controller.active_index is None
            assert events.listener_count() == 0

        assert plain_controller.quad[0] == Point(10, 10)

    def test_update_callback(self, uniform_image, scanner_config, fake_clock):
        updates = []
        quad = [Point(10, 10), Point(90, 10), Point(90, 90), Point(10, 90)]
        controller = InteractionController(
            uniform_image,
            quad,
            config=scanner_config,
            clock=fake_clock,
            on_update=lambda q, state, anchor: updates.append(
                (list(q), state.kind, anchor)
            ),
        )

        controller.begin_drag(2)
        controller.move(80, 85)
        controller.end_drag()

        assert len(updates) == 2
        assert updates[0][0][2] == Point(90, 90)
        assert updates[0][1] == SnapKind.CORNER
        assert updates[1][2] is None

    def test_close_releases_everything(self, plain_controller):
        events = PointerEventBus()
        plain_controller.drag(1, events)
        plain_controller.begin_gesture()

        plain_controller.close()

        assert events.listener_count() == 0
        assert not plain_controller.gesture_active
        assert plain_controller.active_index is None

    def test_leaving_stale_block_keeps_newer_drag(self, plain_controller):
        """An already released subscription does not end the next drag."""
        events = PointerEventBus()

        with plain_controller.drag(0, events):
            events.dispatch(PointerEventBus.UP)
            plain_controller.drag(1, events)

        assert plain_controller.active_index == 1
        assert events.listener_count() == 3

        events.dispatch(PointerEventBus.UP)
        assert plain_controller.active_index is None
        assert events.listener_count() == 0


class TestSpeedGate:
    """Line snap runs only while the pointer moves slower than 0.8 px/ms."""

    def test_fast_then_slow_drag(self, edge_controller, fake_clock, monkeypatch):
        calls = []
        original = interaction.snap_to_edge

        def spy(*args, **kwargs):
            calls.append(args[1:3])
            return original(*args, **kwargs)

        monkeypatch.setattr(interaction, "snap_to_edge", spy)
        events = PointerEventBus()
        kinds = []

        with edge_controller.drag(0, events):
            # (dt in ms, screen y): 100 px/ms first sample, then 5, 5, 0.02
            for dt, y in [(0, 50), (1, 55), (1, 60), (50, 61)]:
                fake_clock.advance(dt)
                events.dispatch(PointerEventBus.MOVE, PointerEvent(45, y))
                kinds.append(edge_controller.snap_state.kind)
                if dt != 50:
                    assert calls == []

            events.dispatch(PointerEventBus.UP)

        assert kinds == [SnapKind.NONE, SnapKind.NONE, SnapKind.NONE, SnapKind.LINE]
        assert len(calls) == 1
        assert edge_controller.quad[0].x == pytest.approx(49.5)

    @pytest.mark.parametrize(
        "travel, expected_kind, expected_calls",
        [
            (7, SnapKind.LINE, 1),  # 0.7 px/ms
            (8, SnapKind.NONE, 0),  # exactly 0.8 px/ms
            (20, SnapKind.NONE, 0),  # 2 px/ms
        ],
    )
    def test_threshold_is_exclusive(
        self,
        edge_controller,
        fake_clock,
        monkeypatch,
        travel,
        expected_kind,
        expected_calls,
    ):
        calls = []
        original = interaction.snap_to_edge

        def spy(*args, **kwargs):
            calls.append(args[1:3])
            return original(*args, **kwargs)

        monkeypatch.setattr(interaction, "snap_to_edge", spy)

        edge_controller.begin_drag(0)
        edge_controller.move(45, 50)
        fake_clock.advance(10)
        state = edge_controller.move(45, 50 + travel)

        assert state.kind == expected_kind
        assert len(calls) == expected_calls
