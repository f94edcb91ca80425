"""In-process implementation of the bridge contract.

Rendering surfaces are tracked in memory (url history, rectangle and the one
visible id). Page content comes from :class:`PageFetcher`, local answers from
an ``ollama`` :class:`~ollama.AsyncClient`, remote answers from OpenRouter's
streaming chat completions API. Answers are published token by token on the
event bus from background tasks; ``ask_*`` return as soon as the request is
accepted.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
import json
import logging
from typing import Any
import webbrowser

import httpx
from ollama import AsyncClient

from ..events import (
    ContentSourceEvent,
    EventBus,
    FaviconChangedEvent,
    ModelFallbackEvent,
    NavigationEvent,
    StreamEvent,
    TitleChangedEvent,
)
from ..exceptions import BridgeCallError
from ..geometry import Rect
from ..persistence import PersistenceError, PreferenceStore, ShortcutStore
from ..task_manager import TaskManager
from .base import Bridge, ModelInfo, PageInfo, Shortcut, ShortcutDraft
from .pages import PageContent, PageFetcher, PageFetchError

LOGGER = logging.getLogger(__name__)

BASE_URL_KEY = "ollama_base_url"
PROMPT_CONTENT_CHARS = 8000
PREVIEW_CHARS = 2000
RETRYABLE_STATUS = {429, 503}


@dataclass
class _Surface:
    history: list[str] = field(default_factory=list)
    index: int = -1
    rect: Rect | None = None

    @property
    def url(self) -> str:
        return self.history[self.index] if 0 <= self.index < len(self.history) else ""

    def visit(self, url: str) -> None:
        del self.history[self.index + 1 :]
        self.history.append(url)
        self.index = len(self.history) - 1


def _extract_chunk_text(chunk: Any) -> str:
    """Extract streamed token text from an Ollama chat chunk."""
    message = getattr(chunk, "message", None)
    if message is not None:
        value = getattr(message, "content", None)
        if isinstance(value, str):
            return value
    if isinstance(chunk, dict):
        message = chunk.get("message")
        if isinstance(message, dict) and isinstance(message.get("content"), str):
            return message["content"]
        value = chunk.get("response")
        if isinstance(value, str):
            return value
    return ""


def _model_names(response: Any) -> list[str]:
    models: Any = getattr(response, "models", None)
    if models is None and isinstance(response, dict):
        models = response.get("models")
    names: list[str] = []
    for model in models or []:
        for key in ("model", "name"):
            value = model.get(key) if isinstance(model, dict) else getattr(model, key, None)
            if isinstance(value, str) and value.strip():
                names.append(value.strip())
                break
    return names


def _sse_token(line: str) -> str | None:
    """Return the delta text of one server-sent event line; ``None`` ends the stream."""
    line = line.strip()
    if not line.startswith("data:"):
        return ""
    payload = line[len("data:") :].strip()
    if payload == "[DONE]":
        return None
    if not payload:
        return ""
    try:
        data = json.loads(payload)
    except json.JSONDecodeError:
        return ""
    choices = data.get("choices") if isinstance(data, dict) else None
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""
    delta = choices[0].get("delta") or choices[0].get("message")
    if not isinstance(delta, dict):
        return ""
    content = delta.get("content")
    return content if isinstance(content, str) else ""


class InProcessBridge(Bridge):
    """Bridge whose backends run inside the application process."""

    def __init__(
        self,
        config: dict[str, Any],
        bus: EventBus,
        *,
        ollama_client: Any | None = None,
        http_client: httpx.AsyncClient | None = None,
        fetcher: PageFetcher | None = None,
        settings: PreferenceStore | None = None,
        shortcuts: ShortcutStore | None = None,
        opener: Callable[[str], Any] | None = None,
    ) -> None:
        self._config = config
        self._bus = bus
        self._tasks = TaskManager()
        self._surfaces: dict[str, _Surface] = {}
        self._visible: str | None = None

        ollama_cfg = config["ollama"]
        openrouter_cfg = config["openrouter"]
        pages_cfg = config["pages"]
        persistence_cfg = config["persistence"]

        self._http = http_client or httpx.AsyncClient(timeout=openrouter_cfg["timeout"])
        self._owns_http = http_client is None
        self._fetcher = fetcher or PageFetcher(
            user_agent=pages_cfg["user_agent"],
            timeout_seconds=pages_cfg["fetch_timeout_seconds"],
            max_content_chars=pages_cfg["max_content_chars"],
            client=http_client,
        )
        self._settings = settings or PreferenceStore(persistence_cfg["settings_path"])
        self._shortcuts = shortcuts or ShortcutStore(persistence_cfg["shortcuts_path"])
        self._opener = opener or webbrowser.open
        self._injected_ollama = ollama_client is not None
        self._ollama = ollama_client or AsyncClient(
            host=self._stored_base_url(), timeout=ollama_cfg["timeout"]
        )

    @property
    def visible_surface(self) -> str | None:
        return self._visible

    def surface_url(self, tab_id: str) -> str:
        surface = self._surfaces.get(tab_id)
        return surface.url if surface else ""

    def surface_rect(self, tab_id: str) -> Rect | None:
        surface = self._surfaces.get(tab_id)
        return surface.rect if surface else None

    async def wait_idle(self) -> None:
        """Wait until every background generation task finished."""
        await self._tasks.await_all()

    def _surface(self, command: str, tab_id: str) -> _Surface:
        surface = self._surfaces.get(tab_id)
        if surface is None:
            raise BridgeCallError(command, f"Surface not found: {tab_id}")
        return surface

    async def ping(self) -> bool:
        return True

    # Rendering surfaces.

    async def open_or_navigate(self, tab_id: str, url: str) -> None:
        if not url.startswith(("http://", "https://")):
            raise BridgeCallError("open_or_navigate", f"Unsupported url: {url}")
        surface = self._surfaces.setdefault(tab_id, _Surface())
        surface.visit(url)
        LOGGER.info(
            "bridge.navigate",
            extra={"event": "bridge.navigate", "tab_id": tab_id, "url": url},
        )

    async def show_only(self, tab_id: str) -> None:
        self._visible = tab_id if tab_id in self._surfaces else None

    async def reposition(self, tab_id: str, rect: Rect) -> None:
        self._surface("reposition", tab_id).rect = rect

    async def hide_all(self) -> None:
        self._visible = None

    async def navigate_back(self, tab_id: str) -> None:
        surface = self._surface("navigate_back", tab_id)
        if surface.index > 0:
            surface.index -= 1
            await self._bus.navigation.publish(NavigationEvent(tab_id=tab_id, url=surface.url))

    async def navigate_forward(self, tab_id: str) -> None:
        surface = self._surface("navigate_forward", tab_id)
        if surface.index < len(surface.history) - 1:
            surface.index += 1
            await self._bus.navigation.publish(NavigationEvent(tab_id=tab_id, url=surface.url))

    async def reload(self, tab_id: str) -> None:
        surface = self._surface("reload", tab_id)
        if surface.url:
            self._fetcher.purge(surface.url)

    # Page content.

    async def clear_cache_for_url(self, url: str) -> None:
        self._fetcher.purge(url)

    async def get_page_info(self, tab_id: str, url: str) -> PageInfo:
        self._surface("get_page_info", tab_id)
        try:
            page, _ = await self._fetcher.get(url)
        except PageFetchError as exc:
            raise BridgeCallError("get_page_info", str(exc)) from exc
        info = PageInfo(title=page.title, favicon=page.favicon)
        await self._bus.title_changed.publish(TitleChangedEvent(tab_id=tab_id, title=info.title))
        await self._bus.favicon_changed.publish(
            FaviconChangedEvent(tab_id=tab_id, favicon=info.favicon)
        )
        return info

    async def _load_content(self, command: str, mode: str, url: str) -> PageContent:
        try:
            page, from_cache = await self._fetcher.get(url)
        except PageFetchError as exc:
            raise BridgeCallError(command, str(exc)) from exc
        preview = page.text[:PREVIEW_CHARS]
        LOGGER.info(
            "bridge.content_source",
            extra={
                "event": "bridge.content_source",
                "mode": mode,
                "url": url,
                "source": page.source,
                "from_cache": from_cache,
                "length": len(page.text),
            },
        )
        await self._bus.content_source.publish(
            ContentSourceEvent(
                mode=mode,
                url=url,
                source=page.source,
                from_cache=from_cache,
                length=len(page.text),
                preview=preview,
            )
        )
        return page

    # Answer backends.

    async def list_local_models(self) -> list[ModelInfo]:
        try:
            response = await self._ollama.list()
        except Exception as exc:  # noqa: BLE001 - external API can fail in many ways.
            raise BridgeCallError("list_local_models", str(exc)) from exc
        return [ModelInfo(name=name) for name in _model_names(response)]

    async def list_remote_models(self) -> list[ModelInfo]:
        cfg = self._config["openrouter"]
        try:
            response = await self._http.get(f"{cfg['base_url']}/models", headers=self._openrouter_headers())
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise BridgeCallError("list_remote_models", str(exc)) from exc
        models: list[ModelInfo] = []
        for item in payload.get("data", []) if isinstance(payload, dict) else []:
            if isinstance(item, dict) and isinstance(item.get("id"), str):
                models.append(ModelInfo(name=item["id"], label=str(item.get("name") or "")))
        return models

    async def ask_local(self, url: str, question: str, model: str, request_id: int = 0) -> None:
        if not model:
            raise BridgeCallError("ask_local", "No local model selected.")
        page = await self._load_content("ask_local", "ollama", url)
        self._tasks.spawn(self._generate_local(page, question, model, request_id))

    async def ask_remote(self, url: str, question: str, model: str, request_id: int = 0) -> None:
        if not self._config["openrouter"]["api_key"]:
            raise BridgeCallError("ask_remote", "The OpenRouter API key is not configured.")
        page = await self._load_content("ask_remote", "openrouter", url)
        self._tasks.spawn(self._generate_remote(page, question, model, request_id))

    def _user_prompt(self, page: PageContent, question: str) -> str:
        return (
            "Analyze the web page content below and answer the question using it.\n\n"
            f"---\n\nWEB PAGE CONTENT:\n\n{page.text[:PROMPT_CONTENT_CHARS]}\n\n"
            f"---\n\nQUESTION: {question}"
        )

    async def _generate_local(
        self, page: PageContent, question: str, model: str, request_id: int
    ) -> None:
        channel = self._bus.local_stream
        messages = [
            {"role": "system", "content": self._config["ollama"]["system_prompt"]},
            {"role": "user", "content": self._user_prompt(page, question)},
        ]
        try:
            stream = await self._ollama.chat(model=model, messages=messages, stream=True)
            async for chunk in stream:
                text = _extract_chunk_text(chunk)
                if text:
                    await channel.publish(StreamEvent(response=text, request_id=request_id))
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001 - external API can fail in many ways.
            LOGGER.error(
                "bridge.local_failed",
                extra={"event": "bridge.local_failed", "model": model, "error": str(exc)},
            )
            await channel.publish(StreamEvent(done=True, error=str(exc), request_id=request_id))
            return
        await channel.publish(StreamEvent(done=True, request_id=request_id))

    async def _generate_remote(
        self, page: PageContent, question: str, model: str, request_id: int
    ) -> None:
        """Stream a remote answer; every outcome ends with one terminal event."""
        channel = self._bus.remote_stream
        try:
            await self._stream_remote(page, question, model, request_id)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001 - malformed responses must still end the answer.
            LOGGER.error(
                "bridge.remote_failed",
                extra={"event": "bridge.remote_failed", "model": model, "error": str(exc)},
            )
            await channel.publish(StreamEvent(done=True, error=str(exc), request_id=request_id))

    async def _stream_remote(
        self, page: PageContent, question: str, model: str, request_id: int
    ) -> None:
        channel = self._bus.remote_stream
        cfg = self._config["openrouter"]
        candidates = [model] + [m for m in cfg["fallback_models"] if m != model]
        combined = (
            f"INSTRUCTIONS:\n{self._config['ollama']['system_prompt']}\n\n"
            + self._user_prompt(page, question)
        )
        last_error = "Every model was rate limited or returned an empty response."
        for index, candidate in enumerate(candidates):
            if index > 0:
                LOGGER.warning(
                    "bridge.model_fallback",
                    extra={"event": "bridge.model_fallback", "to": candidate},
                )
                await self._bus.model_fallback.publish(ModelFallbackEvent(to=candidate))
            body = {
                "model": candidate,
                "stream": True,
                "messages": [{"role": "user", "content": combined}],
            }
            received = False
            try:
                async with self._http.stream(
                    "POST",
                    f"{cfg['base_url']}/chat/completions",
                    json=body,
                    headers={**self._openrouter_headers(), "Accept": "text/event-stream"},
                ) as response:
                    if response.status_code in RETRYABLE_STATUS:
                        last_error = f"HTTP {response.status_code} from {candidate}"
                        continue
                    if response.status_code >= 400:
                        detail = (await response.aread()).decode("utf-8", errors="replace")
                        await channel.publish(
                            StreamEvent(
                                done=True,
                                error=f"OpenRouter HTTP {response.status_code}: {detail}",
                                request_id=request_id,
                            )
                        )
                        return
                    async for line in response.aiter_lines():
                        token = _sse_token(line)
                        if token is None:
                            break
                        if token:
                            received = True
                            await channel.publish(StreamEvent(response=token, request_id=request_id))
            except httpx.HTTPError as exc:
                LOGGER.error(
                    "bridge.remote_failed",
                    extra={"event": "bridge.remote_failed", "model": candidate, "error": str(exc)},
                )
                if received:
                    await channel.publish(StreamEvent(done=True, error=str(exc), request_id=request_id))
                    return
                last_error = str(exc)
                continue
            if received:
                await channel.publish(StreamEvent(done=True, request_id=request_id))
                return
        await channel.publish(StreamEvent(done=True, error=last_error, request_id=request_id))

    def _openrouter_headers(self) -> dict[str, str]:
        headers = {"X-Title": self._config["app"]["title"]}
        api_key = self._config["openrouter"]["api_key"]
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        return headers

    # Settings.

    def _stored_base_url(self) -> str:
        try:
            value = self._settings.get(BASE_URL_KEY)
        except PersistenceError as exc:
            LOGGER.warning(
                "bridge.settings_unreadable",
                extra={"event": "bridge.settings_unreadable", "error": str(exc)},
            )
            value = None
        return value if isinstance(value, str) and value else self._config["ollama"]["host"]

    async def get_base_url(self) -> str:
        return self._stored_base_url()

    async def set_base_url(self, value: str) -> None:
        trimmed = value.strip()
        if not trimmed:
            raise BridgeCallError("set_base_url", "The local endpoint must not be empty.")
        try:
            self._settings.set(BASE_URL_KEY, trimmed)
        except PersistenceError as exc:
            raise BridgeCallError("set_base_url", str(exc)) from exc
        if not self._injected_ollama:
            self._ollama = AsyncClient(host=trimmed, timeout=self._config["ollama"]["timeout"])

    # Pinned shortcuts.

    async def get_shortcuts(self) -> list[Shortcut]:
        try:
            return self._shortcuts.list()
        except PersistenceError as exc:
            raise BridgeCallError("get_shortcuts", str(exc)) from exc

    async def save_shortcut(self, draft: ShortcutDraft) -> int:
        try:
            return self._shortcuts.save(draft)
        except PersistenceError as exc:
            raise BridgeCallError("save_shortcut", str(exc)) from exc

    async def delete_shortcut(self, shortcut_id: int) -> None:
        try:
            self._shortcuts.delete(shortcut_id)
        except PersistenceError as exc:
            raise BridgeCallError("delete_shortcut", str(exc)) from exc

    async def reorder_shortcuts(self, ids: list[int]) -> None:
        try:
            self._shortcuts.reorder(ids)
        except PersistenceError as exc:
            raise BridgeCallError("reorder_shortcuts", str(exc)) from exc

    async def open_external(self, url: str) -> None:
        try:
            await asyncio.to_thread(self._opener, url)
        except Exception as exc:  # noqa: BLE001 - the platform opener can fail in many ways.
            raise BridgeCallError("open_external", str(exc)) from exc

    async def aclose(self) -> None:
        await self._tasks.cancel_all()
        await self._fetcher.aclose()
        if self._owns_http:
            await self._http.aclose()
