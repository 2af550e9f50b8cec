"""
Wizard transition and controller tests. No network: the prompt service is
replaced by tests.fakes.FakeService and background work runs inline.
"""
import sys
import unittest
from pathlib import Path
from unittest import mock

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import wizard
from wizard import WizardController, WizardError
from tests.fakes import (
    FakeService, Deferred, run_now,
    make_image_prompts, make_video_prompts, make_json_prompts,
)

DERIVED_FIELDS = ("script_summary", "image_prompts", "video_prompts", "json_prompts", "error")
STYLE_IMAGE = {"base64": "aGVsbG8=", "mime_type": "image/png"}


def populated_state(step):
    """A state as it would look late in a session, parked on `step`."""
    return {
        **wizard.initial_state(),
        "step": step,
        "script": "A lone astronaut drifts...",
        "script_summary": "Isolation in space.",
        "scene_count": 3,
        "image_style": "cinematic",
        "style_image": STYLE_IMAGE,
        "image_prompts": make_image_prompts(3),
        "video_prompts": make_video_prompts(3),
        "json_prompts": make_json_prompts(3),
        "error": "Something went wrong",
    }


class TestTransitions(unittest.TestCase):
    """Pure (state, input) -> state functions."""

    def test_initial_state(self):
        state = wizard.initial_state()
        self.assertEqual(state["step"], wizard.SCRIPT_INPUT)
        self.assertEqual(state["scene_count"], 3)
        self.assertFalse(state["is_loading"])
        for field in ("image_prompts", "video_prompts", "json_prompts", "error", "style_image"):
            self.assertIsNone(state[field])

    def test_submit_script_requires_text(self):
        for script in ("", "   \n\t", None):
            with self.subTest(script=script):
                with self.assertRaises(WizardError):
                    wizard.submit_script(wizard.initial_state(), script)

    def test_submit_script_trims_and_starts_loading(self):
        state = wizard.submit_script(wizard.initial_state(), "  Once upon a time.  ")
        self.assertEqual(state["script"], "Once upon a time.")
        self.assertEqual(state["step"], wizard.SCENE_PACING)
        self.assertTrue(state["is_loading"])

    def test_transitions_do_not_mutate_input(self):
        before = wizard.initial_state()
        snapshot = dict(before)
        wizard.submit_script(before, "script")
        self.assertEqual(before, snapshot)

    def test_submit_pacing_rejects_invalid_counts(self):
        state = {**wizard.initial_state(), "step": wizard.SCENE_PACING}
        for count in (0, -2, "3", 2.0, True):
            with self.subTest(count=count):
                with self.assertRaises(WizardError):
                    wizard.submit_pacing(state, count)

    def test_submit_pacing_moves_to_style(self):
        state = {**wizard.initial_state(), "step": wizard.SCENE_PACING, "error": "old"}
        state = wizard.submit_pacing(state, 5)
        self.assertEqual(state["scene_count"], 5)
        self.assertEqual(state["step"], wizard.STYLE_INPUT)
        self.assertIsNone(state["error"])

    def test_submit_style_needs_text_or_image(self):
        state = {**wizard.initial_state(), "step": wizard.STYLE_INPUT}
        with self.assertRaises(WizardError):
            wizard.submit_style(state, "   ", None)
        self.assertEqual(wizard.submit_style(state, "", STYLE_IMAGE)["step"], wizard.LOADING)
        self.assertEqual(wizard.submit_style(state, " noir ", None)["image_style"], "noir")

    def test_request_video_is_noop_without_image_prompts(self):
        state = {**wizard.initial_state(), "step": wizard.IMAGE_PROMPTS_RESULTS}
        self.assertIs(wizard.request_video_prompts(state), state)

    def test_request_json_is_noop_without_both_lists(self):
        state = {**wizard.initial_state(), "image_prompts": make_image_prompts(2)}
        self.assertIs(wizard.request_json_prompts(state), state)

    def test_go_back_clears_only_error(self):
        state = populated_state(wizard.VIDEO_PROMPTS_RESULTS)
        back = wizard.go_back(state, wizard.IMAGE_PROMPTS_RESULTS)
        self.assertEqual(back["step"], wizard.IMAGE_PROMPTS_RESULTS)
        self.assertIsNone(back["error"])
        self.assertEqual(back["video_prompts"], state["video_prompts"])

    def test_go_back_rejects_unvisited_and_loading_steps(self):
        state = {**wizard.initial_state(), "step": wizard.SCENE_PACING}
        for target in (wizard.STYLE_INPUT, wizard.LOADING, "nowhere"):
            with self.subTest(target=target):
                with self.assertRaises(WizardError):
                    wizard.go_back(state, target)

    def test_reset_from_any_step_clears_derived_fields(self):
        for step in wizard.STEPS:
            with self.subTest(step=step):
                state = wizard.reset(populated_state(step))
                self.assertEqual(state["step"], wizard.SCRIPT_INPUT)
                self.assertEqual(state["script_summary"], "")
                for field in DERIVED_FIELDS[1:]:
                    self.assertIsNone(state[field])

    def test_late_summary_failure_keeps_banner_off_later_steps(self):
        state = {**wizard.initial_state(), "step": wizard.STYLE_INPUT, "is_loading": True}
        state = wizard.summary_failed(state)
        self.assertEqual(state["script_summary"], wizard.SUMMARY_FALLBACK)
        self.assertIsNone(state["error"])
        self.assertFalse(state["is_loading"])

        on_pacing = wizard.summary_failed({**wizard.initial_state(), "step": wizard.SCENE_PACING})
        self.assertEqual(on_pacing["error"], wizard.SUMMARY_ERROR)

    def test_submissions_rejected_while_loading(self):
        for step in wizard.LOADING_STEPS:
            state = populated_state(step)
            with self.subTest(step=step):
                with self.assertRaises(WizardError):
                    wizard.submit_style(state, "noir", None)
                with self.assertRaises(WizardError):
                    wizard.request_video_prompts(state)


class TestController(unittest.TestCase):

    def make(self, fail=(), spawn=run_now):
        self.service = FakeService(fail=fail)
        return WizardController(self.service, spawn=spawn)

    def walk_to_style(self, controller):
        controller.submit_script("A lone astronaut drifts...")
        controller.submit_pacing(3)

    def test_full_happy_path(self):
        c = self.make()
        c.submit_script("A lone astronaut drifts...")
        self.assertEqual(c.state["script_summary"], "A story about isolation in space.")
        self.assertFalse(c.state["is_loading"])

        c.submit_pacing(3)
        c.submit_style("cinematic", None)
        self.assertEqual(c.state["step"], wizard.IMAGE_PROMPTS_RESULTS)
        self.assertEqual(len(c.state["image_prompts"]), 3)

        self.assertTrue(c.request_video_prompts())
        self.assertEqual(c.state["step"], wizard.VIDEO_PROMPTS_RESULTS)

        self.assertTrue(c.request_json_prompts())
        self.assertEqual(c.state["step"], wizard.JSON_PROMPTS_RESULTS)
        self.assertEqual(c.state["json_prompts"], make_json_prompts(3))

        name, args = self.service.calls[1]
        self.assertEqual(name, "generate_image_prompts")
        self.assertEqual(args, ("A lone astronaut drifts...", 3, "cinematic", None))

    def test_summary_failure_is_not_blocking(self):
        c = self.make(fail={"summarize_script"})
        c.submit_script("A lone astronaut drifts...")
        state = c.state
        self.assertEqual(state["script_summary"], "Analysis failed. Please proceed.")
        self.assertEqual(state["error"], wizard.SUMMARY_ERROR)
        self.assertFalse(state["is_loading"])
        self.assertEqual(state["step"], wizard.SCENE_PACING)

        c.submit_pacing(2)
        self.assertEqual(c.state["step"], wizard.STYLE_INPUT)
        self.assertIsNone(c.state["error"])

    def test_style_failure_returns_to_style_input(self):
        c = self.make(fail={"generate_image_prompts"})
        self.walk_to_style(c)
        c.submit_style("cinematic", STYLE_IMAGE)
        state = c.state
        self.assertEqual(state["step"], wizard.STYLE_INPUT)
        self.assertEqual(state["error"], wizard.IMAGE_PROMPTS_ERROR)
        self.assertIsNone(state["image_prompts"])
        self.assertEqual(state["style_image"], STYLE_IMAGE)

    def test_video_failure_falls_back_to_image_results(self):
        c = self.make(fail={"generate_video_prompts"})
        self.walk_to_style(c)
        c.submit_style("cinematic")
        c.request_video_prompts()
        self.assertEqual(c.state["step"], wizard.IMAGE_PROMPTS_RESULTS)
        self.assertEqual(c.state["error"], wizard.VIDEO_PROMPTS_ERROR)
        self.assertIsNone(c.state["video_prompts"])

    def test_json_failure_falls_back_to_video_results(self):
        c = self.make(fail={"generate_json_prompts"})
        self.walk_to_style(c)
        c.submit_style("cinematic")
        c.request_video_prompts()
        c.request_json_prompts()
        self.assertEqual(c.state["step"], wizard.VIDEO_PROMPTS_RESULTS)
        self.assertEqual(c.state["error"], wizard.JSON_PROMPTS_ERROR)
        self.assertIsNone(c.state["json_prompts"])

    def test_video_request_without_image_prompts_does_nothing(self):
        c = self.make()
        version = c.version
        self.assertFalse(c.request_video_prompts())
        self.assertFalse(c.request_json_prompts())
        self.assertEqual(c.version, version)
        self.assertEqual(self.service.calls, [])

    def test_stale_result_after_reset_is_discarded(self):
        deferred = Deferred()
        c = self.make(spawn=deferred)
        c.submit_script("A lone astronaut drifts...")
        c.reset()
        deferred.run_all()
        self.assertEqual(c.state, wizard.initial_state())

    def test_only_latest_request_lands(self):
        deferred = Deferred()
        c = self.make(spawn=deferred)
        c.submit_script("first draft")
        c.go_back(wizard.SCRIPT_INPUT)
        c.submit_script("second draft")
        deferred.run_all()
        self.assertEqual(c.state["script"], "second draft")
        self.assertFalse(c.state["is_loading"])
        self.assertEqual([args for _, args in self.service.calls], [("first draft",), ("second draft",)])

    def test_slow_summary_still_lands_after_style_submitted(self):
        """The user moves on before the summary arrives; it must not be dropped."""
        deferred = Deferred()
        c = self.make(spawn=deferred)
        c.submit_script("A lone astronaut drifts...")
        c.submit_pacing(3)
        c.submit_style("cinematic")
        deferred.run_all()
        state = c.state
        self.assertFalse(state["is_loading"])
        self.assertEqual(state["script_summary"], "A story about isolation in space.")
        self.assertEqual(state["step"], wizard.IMAGE_PROMPTS_RESULTS)
        self.assertEqual(len(state["image_prompts"]), 3)

    def test_slow_summary_failure_does_not_flag_later_step(self):
        deferred = Deferred()
        c = self.make(fail={"summarize_script"}, spawn=deferred)
        c.submit_script("A lone astronaut drifts...")
        c.submit_pacing(3)
        deferred.run_all()
        state = c.state
        self.assertEqual(state["step"], wizard.STYLE_INPUT)
        self.assertEqual(state["script_summary"], wizard.SUMMARY_FALLBACK)
        self.assertIsNone(state["error"])
        self.assertFalse(state["is_loading"])

    def test_unexpected_exception_falls_back(self):
        """A bug or transport error outside ServiceError must not strand a loading step."""
        c = self.make()
        self.service.summarize_script = mock.Mock(side_effect=RuntimeError("boom"))
        self.service.generate_video_prompts = mock.Mock(side_effect=KeyError("scene"))

        c.submit_script("A lone astronaut drifts...")
        self.assertFalse(c.state["is_loading"])
        self.assertEqual(c.state["script_summary"], wizard.SUMMARY_FALLBACK)

        c.submit_pacing(3)
        c.submit_style("cinematic")
        c.request_video_prompts()
        self.assertEqual(c.state["step"], wizard.IMAGE_PROMPTS_RESULTS)
        self.assertEqual(c.state["error"], wizard.VIDEO_PROMPTS_ERROR)

    def test_double_submit_rejected_while_loading(self):
        deferred = Deferred()
        c = self.make(spawn=deferred)
        self.walk_to_style(c)
        deferred.run_all()
        c.submit_style("cinematic")
        with self.assertRaises(WizardError):
            c.submit_style("cinematic")
        deferred.run_all()
        self.assertEqual(c.state["step"], wizard.IMAGE_PROMPTS_RESULTS)
        self.assertEqual(len([n for n, _ in self.service.calls if n == "generate_image_prompts"]), 1)

    def test_version_advances_on_every_commit(self):
        c = self.make()
        start = c.version
        c.submit_script("script")
        self.assertEqual(c.version, start + 2)
        version, state = c.snapshot()
        self.assertEqual(version, c.version)
        self.assertIs(state, c.state)


if __name__ == "__main__":
    unittest.main()
