"""UI slice: current provider and model, and the processing flag."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

from pynai.exceptions import StateValidationError
from pynai.state.store import Store, StoreSnapshot, Subscriber


class UiManager:
    def __init__(self, provider: str, model: str, *, providers: Sequence[str]) -> None:
        self._providers = tuple(providers)
        self._store = Store(
            {
                "current_provider": provider,
                "current_model": model,
                "is_processing": False,
            }
        )

    def _validate_provider(self, provider: Any) -> None:
        if not isinstance(provider, str) or not provider:
            raise ValueError("Provider must be a non-empty string")
        if provider not in self._providers:
            raise ValueError(f"Provider '{provider}' not recognized. Valid: {', '.join(self._providers)}")

    @staticmethod
    def _validate_model(model: Any) -> None:
        if not isinstance(model, str) or not model:
            raise ValueError("Model must be a non-empty string")

    @staticmethod
    def _validate_flag(value: Any) -> None:
        if not isinstance(value, bool):
            raise TypeError("Processing state must be a boolean")

    def set_provider(self, provider: str) -> None:
        self._store.set("current_provider", provider, self._validate_provider)

    def get_provider(self) -> str:
        return self._store.get("current_provider")

    def set_model(self, model: str) -> None:
        self._store.set("current_model", model, self._validate_model)

    def get_model(self) -> str:
        return self._store.get("current_model")

    def set_provider_and_model(self, provider: str, model: str) -> None:
        """Switch both at once; neither changes if either is invalid."""
        try:
            self._validate_provider(provider)
            self._validate_model(model)
        except ValueError as exc:
            raise StateValidationError(str(exc)) from exc
        self._store.update({"current_provider": provider, "current_model": model})

    def set_processing(self, is_processing: bool) -> None:
        self._store.set("is_processing", is_processing, self._validate_flag)

    def is_processing(self) -> bool:
        return bool(self._store.get("is_processing"))

    def subscribe_provider(self, callback: Subscriber) -> Callable[[], bool]:
        return self._store.subscribe("current_provider", callback)

    def subscribe_model(self, callback: Subscriber) -> Callable[[], bool]:
        return self._store.subscribe("current_model", callback)

    def subscribe_processing(self, callback: Subscriber) -> Callable[[], bool]:
        return self._store.subscribe("is_processing", callback)

    def snapshot(self) -> StoreSnapshot:
        return self._store.snapshot()

    def restore(self, snapshot: StoreSnapshot) -> None:
        self._store.restore(snapshot)

    def debug(self) -> dict[str, Any]:
        return {
            "current_provider": self.get_provider(),
            "current_model": self.get_model(),
            "is_processing": self.is_processing(),
        }
