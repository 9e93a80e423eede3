"""
Controller Tests — aim state machine, shot impulse, ball in hand, lifecycle.

All tests drive the controller headless; ticks come from FixedTicker so
nothing waits on a real clock.
"""

import sys
import os
import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from controller import PoolController, AimMode
from physics import MAX_SPEED, any_moving
from rack import build_rack
from session import STATUS_READY, STATUS_SCRATCH, POT_REWARD, SCRATCH_PENALTY
from ticker import FixedTicker


@pytest.fixture
def ctrl():
    c = PoolController()
    c.pending_events.clear()
    return c


def rack_positions(ctrl):
    return np.array([b.position for b in ctrl.state.balls])


class TestShot:

    def test_long_drag_fires_opposite_direction(self, ctrl):
        ctrl.pointer_down(50.0, 50.0)
        assert ctrl.mode == AimMode.DRAGGING
        fired = ctrl.pointer_up(50.0, 250.0)

        cue = ctrl.state.cue_ball
        assert fired
        assert cue.velocity[0] == pytest.approx(0.0)
        assert cue.velocity[1] == pytest.approx(-MAX_SPEED * 200.0 / 220.0)
        assert ctrl.state.shots == 1
        assert not ctrl.state.cue_ready
        assert ctrl.state.status == "Shooting..."
        assert ctrl.mode == AimMode.IDLE

    def test_power_is_capped_at_full_speed(self, ctrl):
        ctrl.pointer_down(100.0, 100.0)
        ctrl.pointer_up(400.0, 500.0)
        assert ctrl.state.cue_ball.speed == pytest.approx(MAX_SPEED)

    def test_tiny_drag_is_ignored(self, ctrl):
        ctrl.pointer_down(50.0, 50.0)
        fired = ctrl.pointer_up(51.2, 51.6)

        assert not fired
        np.testing.assert_array_equal(ctrl.state.cue_ball.velocity, [0.0, 0.0])
        assert ctrl.state.shots == 0
        assert ctrl.state.cue_ready
        assert ctrl.state.status == "Tiny shot ignored."
        assert ctrl.mode == AimMode.IDLE

    def test_release_without_coordinates_uses_last_pointer(self, ctrl):
        ctrl.pointer_down(300.0, 300.0)
        ctrl.pointer_move(300.0, 350.0)
        assert ctrl.pointer_up()
        assert ctrl.state.cue_ball.velocity[1] < 0

    def test_release_without_press_does_nothing(self, ctrl):
        assert not ctrl.pointer_up(100.0, 100.0)
        assert ctrl.state.shots == 0

    def test_cannot_aim_while_balls_move(self, ctrl):
        ctrl.pointer_down(300.0, 300.0)
        ctrl.pointer_up(350.0, 300.0)
        ctrl.step()
        ctrl.pointer_down(300.0, 300.0)
        assert ctrl.mode == AimMode.IDLE
        assert ctrl.aim_anchor is None

    def test_power_bar_fraction(self, ctrl):
        ctrl.pointer_down(100.0, 100.0)
        ctrl.pointer_move(100.0, 200.0)
        assert ctrl.aim_power == pytest.approx(0.5)
        ctrl.pointer_move(100.0, 400.0)
        assert ctrl.aim_power == 1.0
        ctrl.pointer_up(100.0, 100.0)
        assert ctrl.aim_power == 0.0

    def test_shot_pushes_hud_and_sound(self, ctrl):
        ctrl.pointer_down(300.0, 300.0)
        ctrl.pointer_up(320.0, 300.0)
        assert ctrl.pending_events[-1]["shots"] == 1
        assert ctrl.sound_events[-1]["cue"] == "shot_fired"

    def test_sound_toggle_silences_cues(self, ctrl):
        assert ctrl.toggle_sound(False) is False
        ctrl.pointer_down(300.0, 300.0)
        ctrl.pointer_up(320.0, 300.0)
        assert ctrl.sound_events == []
        assert ctrl.toggle_sound() is True


class TestAimVector:

    def test_guide_points_away_from_drag(self, ctrl):
        ctrl.pointer_down(100.0, 100.0)
        ctrl.pointer_move(100.0, 50.0)
        cue = ctrl.state.cue_ball
        seg = ctrl.aim_vector()
        assert seg == pytest.approx((cue.position[0], cue.position[1],
                                     cue.position[0], cue.position[1] + 50.0))

    def test_no_guide_when_idle(self, ctrl):
        assert ctrl.aim_vector() is None
        assert ctrl.snapshot()["aim"] is None


class TestBallInHand:

    def _scratch(self, ctrl):
        cue = ctrl.state.cue_ball
        cue.position[:] = [50.0, 50.0]
        cue.velocity[:] = [-5.0, -5.0]
        ctrl.state.cue_ready = False
        ctrl.step()

    def test_scratch_penalty_and_ball_in_hand(self, ctrl):
        self._scratch(ctrl)
        assert ctrl.state.score == -SCRATCH_PENALTY
        assert ctrl.state.ball_in_hand
        assert ctrl.mode == AimMode.BALL_IN_HAND
        assert ctrl.state.status == STATUS_SCRATCH
        assert ctrl.sound_events[-1]["cue"] == "pocket_cue"

    def test_rest_keeps_scratch_prompt(self, ctrl):
        self._scratch(ctrl)
        ctrl.step()
        assert ctrl.state.cue_ready
        assert ctrl.state.status == STATUS_SCRATCH

    def test_press_outside_table_is_ignored(self, ctrl):
        self._scratch(ctrl)
        ctrl.pointer_down(5.0, 300.0)
        assert ctrl.state.cue_ball.pocketed
        assert ctrl.mode == AimMode.BALL_IN_HAND

    def test_placement_clamps_and_clears_flag(self, ctrl):
        self._scratch(ctrl)
        ctrl.pointer_down(35.0, 300.0)
        cue = ctrl.state.cue_ball
        assert not cue.pocketed
        np.testing.assert_allclose(cue.position, [30.0 + cue.radius, 300.0])
        np.testing.assert_array_equal(cue.velocity, [0.0, 0.0])
        assert ctrl.mode == AimMode.IDLE
        assert ctrl.state.status == "Cue ball placed. Aim & shoot."

    def test_release_after_scratch_is_not_a_shot(self, ctrl):
        self._scratch(ctrl)
        assert not ctrl.pointer_up(300.0, 300.0)
        assert ctrl.state.shots == 0


class TestScoring:

    def test_object_pot_rewards(self, ctrl):
        ball = ctrl.state.balls[4]
        ball.position[:] = [860.0, 460.0]
        ball.velocity[:] = [2.0, 2.0]
        ctrl.step()
        assert ball.pocketed
        assert ctrl.state.score == POT_REWARD
        assert ctrl.sound_events[-1]["cue"] == "pocket_object"
        assert ctrl.pending_events[-1]["score"] == POT_REWARD


class TestLifecycle:

    def test_new_game_restores_canonical_rack(self, ctrl):
        ctrl.pointer_down(300.0, 300.0)
        ctrl.pointer_up(500.0, 250.0)
        ctrl.run(FixedTicker(200))
        ctrl.state.score = 700

        ctrl.new_game()

        assert ctrl.state.score == 0
        assert ctrl.state.shots == 0
        assert ctrl.state.cue_ready
        assert len(ctrl.state.balls) == 11
        expected = np.array([b.position for b in build_rack(ctrl.table)])
        np.testing.assert_array_equal(rack_positions(ctrl), expected)
        np.testing.assert_allclose(ctrl.state.cue_ball.position, [240.0, 250.0])
        assert ctrl.state.status == "New game started."

    def test_reset_rack_keeps_counters(self, ctrl):
        ctrl.pointer_down(300.0, 300.0)
        ctrl.pointer_up(320.0, 300.0)
        ctrl.state.score = 300
        ctrl.reset_rack()
        assert ctrl.state.score == 300
        assert ctrl.state.shots == 1
        assert ctrl.state.cue_ready
        assert not any_moving(ctrl.state.balls)
        assert ctrl.state.status == "Balls re-racked."

    def test_soft_shot_comes_to_rest(self, ctrl):
        """Low-power shot to the left rail and back: cue ready again afterwards."""
        ctrl.pointer_down(300.0, 250.0)
        ctrl.pointer_up(320.0, 250.0)
        ctrl.run(FixedTicker(3000))

        assert not any_moving(ctrl.state.balls)
        assert ctrl.state.cue_ready
        assert ctrl.state.status == STATUS_READY
        assert not ctrl.state.cue_ball.pocketed


class TestDeterminism:

    def test_identical_input_gives_identical_state(self):
        c1 = PoolController()
        c2 = PoolController()
        for c in (c1, c2):
            c.pointer_down(100.0, 250.0)
            c.pointer_up(20.0, 247.0)
            c.run(FixedTicker(1500))
        np.testing.assert_array_equal(rack_positions(c1), rack_positions(c2))
        assert c1.state.score == c2.state.score
        assert [b.pocketed for b in c1.state.balls] == [b.pocketed for b in c2.state.balls]
