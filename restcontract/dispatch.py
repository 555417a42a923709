"""
Resource to handler dispatch.

Handlers are looked up by a naming convention: the resource path
``/item/{itemId}/comment`` maps to the identifier ``Item.Comment`` and the
``GET`` method to the action ``getAction``. Lookups go through an explicit
``HandlerRegistry`` filled at startup, so a missing handler is reported when
routes are registered rather than when a request arrives.
"""

import logging
import re
from typing import Any, Callable, Dict, Mapping, Union

from .exceptions import HandlerNotFound
from .models import HTTPMethod

logger = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"^\{[^}]+\}$")

ACTION_SUFFIX = "Action"


def resource_identifier(resource_path: str) -> str:
    """Handler identifier for a resource path.

    Examples:
        >>> resource_identifier("/item/{itemId}/")
        'Item'
        >>> resource_identifier("/item/{itemId}/comment")
        'Item.Comment'
    """
    segments = [
        segment for segment in resource_path.split("/")
        if segment and not _PLACEHOLDER_RE.match(segment)
    ]
    return ".".join(segment[:1].upper() + segment[1:] for segment in segments)


def action_name(method: Union[HTTPMethod, str]) -> str:
    """Action identifier for an HTTP method, e.g. ``getAction``."""
    if isinstance(method, HTTPMethod):
        method = method.value
    return f"{method.lower()}{ACTION_SUFFIX}"


class HandlerRegistry:
    """Explicit mapping of handler identifiers to their actions."""

    def __init__(self):
        self._handlers: Dict[str, Dict[str, Callable]] = {}

    def register(self, identifier: str, handler: Union[Mapping[str, Callable], Any]) -> None:
        """Register the actions of a handler.

        Args:
            identifier: Handler identifier, e.g. ``Item.Comment``
            handler: Mapping of action names to callables, or an object whose
                     ``<method>Action`` attributes are the actions
        """
        if isinstance(handler, Mapping):
            actions = dict(handler)
        else:
            actions = {
                name: getattr(handler, name)
                for name in dir(handler)
                if name.endswith(ACTION_SUFFIX) and callable(getattr(handler, name))
            }
        self._handlers.setdefault(identifier, {}).update(actions)
        logger.debug(f"Registered handler {identifier} with actions {sorted(actions)}")

    def action(self, resource_path: str, method: Union[HTTPMethod, str]) -> Callable[[Callable], Callable]:
        """Decorator registering a function as the action for a resource and method.

        Example:
            registry = HandlerRegistry()

            @registry.action("/items/{id}", "GET")
            def get_item(id):
                return {"id": id}
        """
        def decorator(func: Callable) -> Callable:
            self.register(resource_identifier(resource_path), {action_name(method): func})
            return func
        return decorator

    def __contains__(self, identifier: str) -> bool:
        return identifier in self._handlers

    def resolve(self, resource_path: str, method: Union[HTTPMethod, str]) -> Callable:
        """Handler for ``method`` on ``resource_path``.

        Raises:
            HandlerNotFound: if the handler or its action is not registered
        """
        identifier = resource_identifier(resource_path)
        actions = self._handlers.get(identifier)
        if actions is None:
            raise HandlerNotFound(f"{identifier or resource_path} not found")

        name = action_name(method)
        if name not in actions:
            raise HandlerNotFound(f"{identifier}::{name} method not found")
        return actions[name]
