"""
Dispatcher — route, call, fall back, persist.

    ROUTING → CALLING_PRIMARY → (SUCCESS | FALLING_BACK)
            → CALLING_FALLBACK → (SUCCESS | FAILED)

Two tiers of fallback:
  - route time: no direct key → the selector already picked OpenRouter.
  - call time:  the direct call failed (status, timeout, bad body) →
                retry once through OpenRouter if the user has a key for it.

Primary and fallback are strictly sequential. Only a successful dispatch
persists an assistant message; failures and cancellations persist nothing.
Transparent to callers: same turns in, one message out, plus which
provider actually served it.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from switchboard.adapters import BaseAdapter, build_adapters
from switchboard.adapters.base import AdapterResponse
from switchboard.credentials import CredentialResolver, CredentialSet
from switchboard.errors import (
    AdapterError,
    AdapterTimeoutError,
    FallbackFailed,
    FallbackUnavailable,
    InvalidRequest,
    MessagePersistenceError,
    NoCredentialAvailable,
    SwitchboardError,
    UnsupportedProvider,
)
from switchboard.routing import Provider, RouteDecision, select_route
from switchboard.storage.base import CredentialStore, MessageStore
from switchboard.turns import ASSISTANT, Turn, normalize_turns

logger = logging.getLogger(__name__)


class DispatchState(str, Enum):
    ROUTING = "routing"
    CALLING_PRIMARY = "calling_primary"
    FALLING_BACK = "falling_back"
    CALLING_FALLBACK = "calling_fallback"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class DispatchResult:
    """What the caller gets back from a successful dispatch."""
    content: str
    provider: Provider
    model: str
    direct: bool                    # served with the user's own provider key
    fell_back: bool = False         # a direct call failed first
    message_id: str | None = None
    latency_ms: float = 0.0
    cost_usd: float | None = None
    states: list[DispatchState] = field(default_factory=list)

    @property
    def notice(self) -> str:
        """Human-readable note on who served the response."""
        if self.direct:
            return f"Used your own {self.provider.title} key"
        if self.fell_back:
            return "Direct API call failed; used OpenRouter fallback"
        return "Used OpenRouter fallback"

    def to_dict(self) -> dict:
        return {
            "content": self.content,
            "model": self.model,
            "provider": self.provider.value,
            "direct": self.direct,
            "notice": self.notice,
            "message_id": self.message_id,
        }


class Dispatcher:
    """
    Composes credential resolution, route selection and the adapters.
    Holds no per-request state; every dispatch owns its own route and calls.
    """

    def __init__(
        self,
        credential_store: CredentialStore,
        message_store: MessageStore,
        adapters: dict[Provider, BaseAdapter],
        timeout: float = 30.0,
        serialize_per_context: bool = False,
    ):
        self.resolver = CredentialResolver(credential_store)
        self.message_store = message_store
        self.adapters = adapters
        self.timeout = timeout
        self.serialize_per_context = serialize_per_context
        self._context_locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @classmethod
    def from_config(cls, cfg: dict, store) -> "Dispatcher":
        """Build from config; `store` implements both store interfaces."""
        d_cfg = cfg.get("dispatch", {})
        return cls(
            credential_store=store,
            message_store=store,
            adapters=build_adapters(cfg),
            timeout=float(d_cfg.get("timeout", 30)),
            serialize_per_context=bool(d_cfg.get("serialize_per_context", False)),
        )

    def route(self, user_id: str, model_id: str) -> RouteDecision:
        """Route decision for a user, without calling anything."""
        return select_route(model_id, self.resolver.resolve(user_id))

    async def dispatch(
        self,
        user_id: str,
        context_id: str,
        turns: Iterable[Turn | dict],
        model_id: str,
    ) -> DispatchResult:
        """
        Send a conversation to the model and persist the assistant reply.

        Raises a SwitchboardError subclass on terminal failure; in that case
        nothing is persisted. asyncio cancellation propagates untouched.
        """
        model_id = (model_id or "").strip()
        if not model_id:
            raise InvalidRequest("Model is required")
        snapshot = normalize_turns(turns)
        if not snapshot:
            raise InvalidRequest("At least one turn is required")

        if not self.serialize_per_context:
            return await self._dispatch(user_id, context_id, snapshot, model_id)

        # Entries live only while someone holds or waits on the context
        lock = self._context_locks.get(context_id)
        if lock is None:
            lock = self._context_locks[context_id] = asyncio.Lock()
        self._lock_users[context_id] = self._lock_users.get(context_id, 0) + 1
        try:
            async with lock:
                return await self._dispatch(user_id, context_id, snapshot, model_id)
        finally:
            self._lock_users[context_id] -= 1
            if not self._lock_users[context_id]:
                del self._lock_users[context_id]
                del self._context_locks[context_id]

    async def _dispatch(
        self,
        user_id: str,
        context_id: str,
        turns: tuple[Turn, ...],
        model_id: str,
    ) -> DispatchResult:
        states = [DispatchState.ROUTING]
        credentials = self.resolver.resolve(user_id)
        route = select_route(model_id, credentials)
        logger.debug(
            "Route for '%s': provider=%s direct=%s", model_id, route.provider, route.use_direct_api,
        )

        primary_error: AdapterError | None = None
        if route.use_direct_api:
            states.append(DispatchState.CALLING_PRIMARY)
            try:
                response = await self._call(route.provider, turns, model_id, route.api_key)
            except AdapterError as e:
                primary_error = e
                states.append(DispatchState.FALLING_BACK)
                logger.warning(
                    "Direct %s call failed for model '%s': %s; trying OpenRouter fallback",
                    route.provider, model_id, e.message,
                )
            else:
                return self._finish(user_id, context_id, model_id, response, states,
                                    direct=True, fell_back=False)

        aggregator_key = self._aggregator_key(route, credentials)
        if not aggregator_key:
            states.append(DispatchState.FAILED)
            if primary_error is not None:
                logger.error("No OpenRouter fallback for user %s after: %s", user_id, primary_error.message)
                raise FallbackUnavailable(primary_error) from primary_error
            logger.error("No credential for model '%s' (user %s)", model_id, user_id)
            raise NoCredentialAvailable(route.model_provider, model_id)

        states.append(DispatchState.CALLING_FALLBACK)
        try:
            response = await self._call(Provider.OPENROUTER, turns, model_id, aggregator_key)
        except AdapterError as e:
            states.append(DispatchState.FAILED)
            logger.error("OpenRouter call failed for model '%s': %s", model_id, e.message)
            if primary_error is not None:
                raise FallbackFailed(primary_error, e) from e
            raise

        return self._finish(user_id, context_id, model_id, response, states,
                            direct=False, fell_back=primary_error is not None)

    @staticmethod
    def _aggregator_key(route: RouteDecision, credentials: CredentialSet) -> str | None:
        if route.provider is Provider.OPENROUTER:
            return route.api_key
        return credentials.get(Provider.OPENROUTER)

    async def _call(
        self,
        provider: Provider,
        turns: tuple[Turn, ...],
        model_id: str,
        api_key: str,
    ) -> AdapterResponse:
        adapter = self.adapters.get(provider)
        if adapter is None:
            raise UnsupportedProvider(provider)
        try:
            return await asyncio.wait_for(adapter.send(turns, model_id, api_key), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.warning("%s call exceeded %.1fs", provider, self.timeout)
            raise AdapterTimeoutError(provider, self.timeout) from e

    def _finish(
        self,
        user_id: str,
        context_id: str,
        model_id: str,
        response: AdapterResponse,
        states: list[DispatchState],
        direct: bool,
        fell_back: bool,
    ) -> DispatchResult:
        try:
            message = self.message_store.append_message(
                context_id,
                ASSISTANT,
                response.content,
                user_id=user_id,
                model=model_id,
                provider=response.provider.value,
                latency_ms=response.latency_ms,
                cost_usd=response.cost_usd,
            )
        except SwitchboardError:
            states.append(DispatchState.FAILED)
            raise
        except Exception as e:
            states.append(DispatchState.FAILED)
            logger.error("Could not store reply for context %s: %s", context_id, e)
            raise MessagePersistenceError(
                f"Could not store the assistant reply for context {context_id}: {e}"
            ) from e
        states.append(DispatchState.SUCCESS)
        logger.info(
            "%s served model '%s' in %.0fms (%s)",
            response.provider, model_id, response.latency_ms,
            "direct" if direct else ("fallback after failure" if fell_back else "aggregator"),
        )
        return DispatchResult(
            content=response.content,
            provider=response.provider,
            model=model_id,
            direct=direct,
            fell_back=fell_back,
            message_id=message.id,
            latency_ms=response.latency_ms,
            cost_usd=response.cost_usd,
            states=states,
        )
