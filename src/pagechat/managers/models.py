"""Answer-mode toggle and model selector state."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..bridge.base import ModelInfo
from ..persistence import PersistenceError, PreferenceStore
from ..state import AnswerMode
from .stream import LOCAL_PREFIX, NO_MODEL_SENTINEL, REMOTE_PREFIX

if TYPE_CHECKING:
    from ..bridge.base import Bridge
    from ..context import ShellContext

LOGGER = logging.getLogger(__name__)

MODE_PREFERENCE_KEY = "ai_mode"
LOADING_VALUE = "ollama:loading"
UNAVAILABLE_VALUE = "bridge:unavailable"

ModelOption = tuple[str, str]


class ModelSelector:
    """Backs the mode toggle and the local model dropdown.

    Every mode switch and model list refresh advances the shared generation
    token; a list that resolves under an older token is dropped.
    """

    def __init__(
        self,
        context: ShellContext,
        bridge: Bridge,
        preferences: PreferenceStore,
        *,
        default_remote_model: str,
    ) -> None:
        self.context = context
        self.bridge = bridge
        self.preferences = preferences
        self.default_remote_model = default_remote_model
        self.options: list[ModelOption] = []
        self.visible = False
        self.loading = False
        self._cache: list[ModelInfo] = []
        self._explicit_remote: str | None = None

    @property
    def default_remote_value(self) -> str:
        return f"{REMOTE_PREFIX}{self.default_remote_model}"

    def read_mode(self) -> AnswerMode:
        """Return the persisted mode; remote when nothing usable is stored."""
        try:
            value = self.preferences.get(MODE_PREFERENCE_KEY)
        except PersistenceError as exc:
            LOGGER.warning(
                "models.preference_unreadable",
                extra={"event": "models.preference_unreadable", "error": str(exc)},
            )
            return AnswerMode.REMOTE
        return AnswerMode.from_preference(value)

    def _persist_mode(self, mode: AnswerMode) -> None:
        try:
            self.preferences.set(MODE_PREFERENCE_KEY, mode.value)
        except PersistenceError as exc:
            LOGGER.warning(
                "models.preference_write_failed",
                extra={"event": "models.preference_write_failed", "error": str(exc)},
            )

    def _set_current(self, value: str) -> None:
        self.context.current_model = value
        self.context.notify("model")

    async def set_mode(self, mode: AnswerMode) -> None:
        token = self.context.generation.advance()
        self.context.mode = mode
        self.context.notify("mode")
        self._persist_mode(mode)
        LOGGER.info(
            "models.mode_changed",
            extra={"event": "models.mode_changed", "mode": mode.value, "generation": token},
        )
        if mode == AnswerMode.LOCAL:
            self.visible = True
            await self.load_local_models(token)
            return
        self.visible = False
        self.loading = False
        self.options = []
        self._set_current(self._explicit_remote or self.default_remote_value)

    async def load_local_models(self, token: int | None = None) -> bool:
        """Refresh the local model list.

        Args:
            token: Generation captured by the caller; a new one is started
                when omitted

        Returns:
            False when the result was discarded as stale.
        """
        if token is None:
            token = self.context.generation.advance()
        self.loading = True
        self.options = [(LOADING_VALUE, "Loading models...")]
        self.context.notify("model")

        try:
            models = await self.bridge.list_local_models()
        except Exception as exc:  # noqa: BLE001 - a failed fetch counts as empty.
            LOGGER.warning(
                "models.local_fetch_failed",
                extra={"event": "models.local_fetch_failed", "error": str(exc)},
            )
            models = []

        if not self.context.generation.is_current(token):
            LOGGER.debug(
                "models.stale_result",
                extra={"event": "models.stale_result", "generation": token},
            )
            return False

        self.loading = False
        if models:
            self._cache = list(models)
        shown = models or self._cache
        if shown:
            self.options = [(f"{LOCAL_PREFIX}{m.name}", m.display_name) for m in shown]
            self._set_current(self.options[0][0])
        else:
            self.options = [(NO_MODEL_SENTINEL, "No local models found")]
            self._set_current(NO_MODEL_SENTINEL)
        return True

    def select(self, value: str) -> None:
        if value in (LOADING_VALUE, UNAVAILABLE_VALUE):
            return
        if value.startswith(REMOTE_PREFIX):
            self._explicit_remote = value
        self._set_current(value)

    async def load_remote_models(self) -> list[ModelInfo]:
        try:
            return await self.bridge.list_remote_models()
        except Exception as exc:  # noqa: BLE001 - the list is optional.
            LOGGER.warning(
                "models.remote_fetch_failed",
                extra={"event": "models.remote_fetch_failed", "error": str(exc)},
            )
            return []

    def show_unavailable(self) -> None:
        """Replace the selector contents with a single "bridge unavailable" entry."""
        self.loading = False
        self.visible = True
        self.options = [(UNAVAILABLE_VALUE, "Bridge unavailable")]
        self._set_current("")
