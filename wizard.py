"""
Alpha Prompt Generator — Wizard
State of one session's wizard and the transitions that move it along.

The module-level transitions are pure: they take a state dict and return a
new one, never mutating their input. WizardController owns the current
state for a session and runs the Prompt Service calls in the background,
discarding any result that arrives after a newer request or a reset.
"""
import threading

from prompt_service import ServiceError

# Steps, in wizard order
SCRIPT_INPUT = "script_input"
SCENE_PACING = "scene_pacing"
STYLE_INPUT = "style_input"
LOADING = "loading"
IMAGE_PROMPTS_RESULTS = "image_prompts_results"
VIDEO_PROMPTS_LOADING = "video_prompts_loading"
VIDEO_PROMPTS_RESULTS = "video_prompts_results"
JSON_PROMPTS_LOADING = "json_prompts_loading"
JSON_PROMPTS_RESULTS = "json_prompts_results"

STEPS = (
    SCRIPT_INPUT,
    SCENE_PACING,
    STYLE_INPUT,
    LOADING,
    IMAGE_PROMPTS_RESULTS,
    VIDEO_PROMPTS_LOADING,
    VIDEO_PROMPTS_RESULTS,
    JSON_PROMPTS_LOADING,
    JSON_PROMPTS_RESULTS,
)
LOADING_STEPS = (LOADING, VIDEO_PROMPTS_LOADING, JSON_PROMPTS_LOADING)

DEFAULT_SCENE_COUNT = 3

SUMMARY_FALLBACK = "Analysis failed. Please proceed."
SUMMARY_ERROR = "Could not analyze script. Please try again."
IMAGE_PROMPTS_ERROR = "Failed to generate prompts. Please check your inputs and try again."
VIDEO_PROMPTS_ERROR = "Failed to generate video prompts."
JSON_PROMPTS_ERROR = "Failed to generate JSON prompts."

# Background request kinds, each with its own staleness token
SUMMARY_REQUEST = "summary"
PROMPTS_REQUEST = "prompts"


class WizardError(ValueError):
    """Invalid input, or a transition the current state does not allow."""


def initial_state():
    """Fresh state for a new session or a reset."""
    return {
        "step": SCRIPT_INPUT,
        "script": "",
        "script_summary": "",
        "scene_count": DEFAULT_SCENE_COUNT,
        "image_style": "",
        "style_image": None,
        "image_prompts": None,
        "video_prompts": None,
        "json_prompts": None,
        "error": None,
        "is_loading": False,
    }


def _require_idle(state):
    if state["step"] in LOADING_STEPS:
        raise WizardError("A request is already in progress.")


# =============================================================================
# TRANSITIONS
# =============================================================================

def submit_script(state, script):
    _require_idle(state)
    script = (script or "").strip()
    if not script:
        raise WizardError("Please enter a script.")
    return {**state, "script": script, "step": SCENE_PACING, "is_loading": True, "error": None}


def summary_ready(state, summary):
    return {**state, "script_summary": summary, "is_loading": False}


def summary_failed(state):
    """The banner only makes sense while the summary is on screen."""
    new_state = {**state, "script_summary": SUMMARY_FALLBACK, "is_loading": False}
    if state["step"] == SCENE_PACING:
        new_state["error"] = SUMMARY_ERROR
    return new_state


def submit_pacing(state, count):
    _require_idle(state)
    if isinstance(count, bool) or not isinstance(count, int) or count < 1:
        raise WizardError("Scene count must be a whole number of at least 1.")
    return {**state, "scene_count": count, "step": STYLE_INPUT, "error": None}


def submit_style(state, style, image=None):
    _require_idle(state)
    style = (style or "").strip()
    if not style and not image:
        raise WizardError("Describe a style or upload a reference image.")
    return {**state, "image_style": style, "style_image": image, "step": LOADING, "error": None}


def image_prompts_ready(state, prompts):
    return {**state, "image_prompts": prompts, "step": IMAGE_PROMPTS_RESULTS}


def image_prompts_failed(state):
    return {**state, "error": IMAGE_PROMPTS_ERROR, "step": STYLE_INPUT}


def request_video_prompts(state):
    """Returns `state` itself when there is nothing to animate yet."""
    if state["image_prompts"] is None:
        return state
    _require_idle(state)
    return {**state, "step": VIDEO_PROMPTS_LOADING, "error": None}


def video_prompts_ready(state, prompts):
    return {**state, "video_prompts": prompts, "step": VIDEO_PROMPTS_RESULTS}


def video_prompts_failed(state):
    return {**state, "error": VIDEO_PROMPTS_ERROR, "step": IMAGE_PROMPTS_RESULTS}


def request_json_prompts(state):
    """Returns `state` itself unless both prompt lists are present."""
    if state["image_prompts"] is None or state["video_prompts"] is None:
        return state
    _require_idle(state)
    return {**state, "step": JSON_PROMPTS_LOADING, "error": None}


def json_prompts_ready(state, records):
    return {**state, "json_prompts": records, "step": JSON_PROMPTS_RESULTS}


def json_prompts_failed(state):
    return {**state, "error": JSON_PROMPTS_ERROR, "step": VIDEO_PROMPTS_RESULTS}


def go_back(state, target):
    """Return to an earlier, non-loading step. Only the error is cleared."""
    if target not in STEPS or target in LOADING_STEPS:
        raise WizardError(f"Cannot go back to {target!r}.")
    if STEPS.index(target) > STEPS.index(state["step"]):
        raise WizardError(f"{target!r} has not been visited yet.")
    return {**state, "step": target, "error": None}


def set_error(state, message):
    return {**state, "error": message}


def reset(state=None):
    return initial_state()


# =============================================================================
# CONTROLLER
# =============================================================================

def _spawn_thread(fn):
    threading.Thread(target=fn, daemon=True).start()


class WizardController:
    """
    Owns one session's wizard state.

    Args:
        service: Object exposing the prompt_service operations
        spawn: Callable that runs a zero-argument function in the background
    """

    def __init__(self, service, spawn=None):
        self.service = service
        self._spawn = spawn or _spawn_thread
        self._lock = threading.Lock()
        # The summary and the prompt requests go stale independently
        self._tokens = {SUMMARY_REQUEST: 0, PROMPTS_REQUEST: 0}
        self._state = initial_state()
        self.version = 0

    @property
    def state(self):
        with self._lock:
            return self._state

    def snapshot(self):
        """Return (version, state) read under the same lock."""
        with self._lock:
            return self.version, self._state

    def _apply(self, transition, *args, request=None):
        """
        Commit a transition.

        `request` names the token sequence (SUMMARY_REQUEST, PROMPTS_REQUEST)
        the transition starts a new request on; a tuple bumps several.

        Returns:
            (token, new state) where token is None on a no-op
        """
        with self._lock:
            new_state = transition(self._state, *args)
            if new_state is self._state:
                return None, new_state
            self._state = new_state
            self.version += 1
            if request is None:
                return (), new_state
            kinds = request if isinstance(request, tuple) else (request,)
            for kind in kinds:
                self._tokens[kind] += 1
            return (kinds[0], self._tokens[kinds[0]]), new_state

    def _complete(self, token, transition, *args):
        kind, number = token
        with self._lock:
            current = self._tokens[kind]
            if number != current:
                print(f"[wizard] Discarding stale {transition.__name__} ({kind} request {number}, current {current})")
                return False
            self._state = transition(self._state, *args)
            self.version += 1
            return True

    def _run(self, token, call, on_success, on_failure):
        def worker():
            try:
                result = call()
            except ServiceError as e:
                print(f"[wizard] {on_failure.__name__}: {e}")
                self._complete(token, on_failure)
            except Exception as e:
                # The session must never be left parked on a loading step
                print(f"[wizard] {on_failure.__name__} (unexpected {type(e).__name__}): {e}")
                self._complete(token, on_failure)
            else:
                self._complete(token, on_success, result)
        self._spawn(worker)

    # --- user actions ---

    def submit_script(self, script):
        token, state = self._apply(submit_script, script, request=SUMMARY_REQUEST)
        self._run(
            token,
            lambda: self.service.summarize_script(state["script"]),
            summary_ready,
            summary_failed,
        )

    def submit_pacing(self, count):
        self._apply(submit_pacing, count)

    def submit_style(self, style, image=None):
        token, state = self._apply(submit_style, style, image, request=PROMPTS_REQUEST)
        self._run(
            token,
            lambda: self.service.generate_image_prompts(
                state["script"], state["scene_count"], state["image_style"], state["style_image"]
            ),
            image_prompts_ready,
            image_prompts_failed,
        )

    def request_video_prompts(self):
        """Returns False when there were no image prompts to animate."""
        token, state = self._apply(request_video_prompts, request=PROMPTS_REQUEST)
        if token is None:
            return False
        self._run(
            token,
            lambda: self.service.generate_video_prompts(state["image_prompts"]),
            video_prompts_ready,
            video_prompts_failed,
        )
        return True

    def request_json_prompts(self):
        """Returns False unless both image and video prompts exist."""
        token, state = self._apply(request_json_prompts, request=PROMPTS_REQUEST)
        if token is None:
            return False
        self._run(
            token,
            lambda: self.service.generate_json_prompts(state["image_prompts"], state["video_prompts"]),
            json_prompts_ready,
            json_prompts_failed,
        )
        return True

    def go_back(self, target):
        self._apply(go_back, target)

    def set_error(self, message):
        self._apply(set_error, message)

    def reset(self):
        # A reset supersedes whatever is still in flight
        self._apply(reset, request=(SUMMARY_REQUEST, PROMPTS_REQUEST))
