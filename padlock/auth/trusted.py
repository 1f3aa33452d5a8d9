"""
Trusted providers: application-supplied credential checks (password login,
magic links...) driven through the same entry point as OAuth providers.

A trusted provider is any object with an ``authenticate(*args)`` method,
sync or async, returning a user or ``None``. Returning ``None`` and raising
``AuthenticationFailed`` mean the same thing: the credentials were rejected.
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Protocol, Sequence, Union

from pydantic import ValidationError

from ..errors import AuthenticationFailed, BadRequestError
from ..models import NormalizedUser

logger = logging.getLogger(__name__)


UserLike = Union[NormalizedUser, dict]


class TrustedProvider(Protocol):
    def authenticate(
        self, *args: Any
    ) -> Union[Optional[UserLike], Awaitable[Optional[UserLike]]]:
        ...


class FunctionTrustedProvider:
    """Adapts a plain function to the ``TrustedProvider`` protocol."""

    def __init__(self, func: Callable[..., Any]):
        self._func = func
        self.__wrapped__ = func
        self.__doc__ = func.__doc__

    def authenticate(self, *args: Any) -> Any:
        return self._func(*args)

    def __repr__(self) -> str:
        return f"<trusted provider {getattr(self._func, '__name__', self._func)!r}>"


def trusted_provider(func: Callable[..., Any]) -> FunctionTrustedProvider:
    """
    Decorator turning a credential-check function into a trusted provider.

    Example:
        >>> @trusted_provider
        ... async def internal(email, password):
        ...     if password != "letmein":
        ...         return None
        ...     return {"provider": "internal", "providerAccountId": email}
    """
    return FunctionTrustedProvider(func)


async def maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def coerce_user(value: Any) -> NormalizedUser:
    """
    Turn whatever a provider or hook returned into a ``NormalizedUser``.

    Raises:
        TypeError: If the value cannot describe a user
    """
    if isinstance(value, NormalizedUser):
        return value
    if isinstance(value, dict):
        try:
            return NormalizedUser.model_validate(value)
        except ValidationError as e:
            raise TypeError(f"invalid user payload: {e}") from e
    raise TypeError(f"expected a user, got {type(value).__name__}")


def check_arguments(provider: TrustedProvider, args: Sequence[Any]) -> None:
    """
    Reject ``args`` that ``provider.authenticate`` cannot be called with.

    Raises:
        BadRequestError: On an arity mismatch
    """
    target = getattr(provider, "__wrapped__", None) or provider.authenticate
    try:
        signature = inspect.signature(target)
    except (TypeError, ValueError):
        return

    try:
        signature.bind(*args)
    except TypeError as e:
        raise BadRequestError("invalid arguments") from e


async def dispatch(
    provider_id: str,
    provider: TrustedProvider,
    args: Sequence[Any],
) -> NormalizedUser:
    """
    Invoke ``provider.authenticate`` with ``args`` spread positionally.

    Raises:
        BadRequestError: If ``args`` do not fit the provider's signature
        AuthenticationFailed: If the provider returned None or raised it
    """
    check_arguments(provider, args)
    result = await maybe_await(provider.authenticate(*args))

    if result is None:
        logger.info(
            "Trusted provider rejected credentials",
            extra={"provider": provider_id, "arg_count": len(args)},
        )
        raise AuthenticationFailed()

    return coerce_user(result)
