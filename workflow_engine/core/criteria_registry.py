"""Registry of named validation criteria that gate edge traversal."""

import inspect
from typing import Awaitable, Callable, Dict, Union

from .exceptions import CriterionRegistryError
from .logging import get_logger

logger = get_logger(__name__)

CriterionCheck = Callable[[], Union[bool, Awaitable[bool]]]


class CriterionRegistry:
    """Registry mapping criterion identifiers to the checks that evaluate them.

    A check takes no arguments and returns a bool, or an awaitable resolving to
    one (a remote permission lookup, a form-completeness query, ...).
    """

    def __init__(self):
        self._checks: Dict[str, CriterionCheck] = {}
        self._descriptions: Dict[str, str] = {}

    def register(self, name: str, check: CriterionCheck, description: str = "") -> None:
        """Register a check under a criterion identifier.

        Args:
            name: Criterion identifier as used in edge ``validation_criteria``
            check: Zero-argument callable returning a bool or an awaitable bool
            description: Optional description of what the criterion asserts

        Raises:
            CriterionRegistryError: If the name is empty, taken, or the check is not callable
        """
        if not name or not name.strip():
            raise CriterionRegistryError("Criterion name cannot be empty", operation="register")

        name = name.strip()

        if not callable(check):
            raise CriterionRegistryError(
                f"Criterion '{name}' must be a callable", criterion=name, operation="register"
            )

        try:
            sig = inspect.signature(check)
        except (ValueError, TypeError) as e:
            raise CriterionRegistryError(
                f"Cannot inspect signature for criterion '{name}': {e}",
                criterion=name, operation="register"
            )
        required = [
            p for p in sig.parameters.values()
            if p.default is p.empty and p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
        ]
        if required:
            raise CriterionRegistryError(
                f"Criterion '{name}' must be callable without arguments",
                criterion=name, operation="register"
            )

        if name in self._checks:
            raise CriterionRegistryError(
                f"Criterion '{name}' is already registered", criterion=name, operation="register"
            )

        self._checks[name] = check
        self._descriptions[name] = description.strip() if description else ""
        logger.info(f"Registered criterion '{name}'")

    def criterion(self, name: str, description: str = ""):
        """Decorator form of :meth:`register`."""
        def decorator(check: CriterionCheck) -> CriterionCheck:
            self.register(name, check, description)
            return check
        return decorator

    def get(self, name: str) -> CriterionCheck:
        """Retrieve a registered check.

        Raises:
            CriterionRegistryError: If the criterion is not registered
        """
        try:
            return self._checks[name.strip()]
        except KeyError:
            raise CriterionRegistryError(
                f"Criterion '{name}' is not registered", criterion=name, operation="get"
            ) from None

    def unregister(self, name: str) -> bool:
        """Remove a criterion; returns False if it was not registered."""
        name = name.strip()
        if name not in self._checks:
            return False
        del self._checks[name]
        self._descriptions.pop(name, None)
        logger.info(f"Unregistered criterion '{name}'")
        return True

    def exists(self, name: str) -> bool:
        if not name or not name.strip():
            return False
        return name.strip() in self._checks

    def list_criteria(self) -> Dict[str, str]:
        """Map every registered criterion to its description."""
        return dict(self._descriptions)

    async def evaluate(self, name: str) -> bool:
        """Run the check registered under ``name``.

        This coroutine is the criterion evaluator handed to the transition
        validator. Errors raised by the check propagate; the validator is
        responsible for treating them as failures.

        Raises:
            CriterionRegistryError: If the criterion is not registered
        """
        result = self.get(name)()
        if inspect.isawaitable(result):
            result = await result
        return bool(result)
