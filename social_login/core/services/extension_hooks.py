"""Extension points fired during identity resolution and login."""

import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any

from social_login.core.logging import log_event

ON_BEFORE_CREATE = "on_before_create"
ON_AFTER_CREATE = "on_after_create"
ON_MEMBER_LINKED = "on_member_linked"
ON_BEFORE_OPAUTH_REGISTER = "on_before_opauth_register"
GET_CANT_LOGIN_BACK_URL = "get_cant_login_back_url"
GET_SUCCESS_BACK_URL = "get_success_back_url"

KNOWN_HOOKS = frozenset(
    {
        ON_BEFORE_CREATE,
        ON_AFTER_CREATE,
        ON_MEMBER_LINKED,
        ON_BEFORE_OPAUTH_REGISTER,
        GET_CANT_LOGIN_BACK_URL,
        GET_SUCCESS_BACK_URL,
    }
)


class HookRegistry:
    """Ordered observer lists per hook name.

    Callbacks run in registration order and every return value is collected.
    Callback failures propagate to the caller.
    """

    def __init__(self):
        self._hooks: dict[str, list[Callable[..., Any]]] = defaultdict(list)

    def register(self, name: str, callback: Callable[..., Any]) -> Callable[..., Any]:
        if name not in KNOWN_HOOKS:
            raise ValueError(f"Unknown extension hook: {name}")
        self._hooks[name].append(callback)
        return callback

    def on(self, name: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator form of `register`."""

        def decorator(callback: Callable[..., Any]) -> Callable[..., Any]:
            return self.register(name, callback)

        return decorator

    def invoke(self, name: str, *args: Any, **kwargs: Any) -> list[Any]:
        callbacks = self._hooks.get(name, [])
        if callbacks:
            log_event(
                "hooks.invoke",
                level=logging.DEBUG,
                component="hooks",
                operation=name,
                callbacks=len(callbacks),
            )
        return [callback(*args, **kwargs) for callback in callbacks]

    def last_result(self, name: str, *args: Any, **kwargs: Any) -> Any | None:
        """Invoke a hook and return the last non-empty result, if any."""
        results = [result for result in self.invoke(name, *args, **kwargs) if result]
        return results[-1] if results else None

    def clear(self, name: str | None = None) -> None:
        if name is None:
            self._hooks.clear()
        else:
            self._hooks.pop(name, None)
