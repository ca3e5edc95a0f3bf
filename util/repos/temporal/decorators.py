"""
Temporal decorators for automatically creating activities and workflow proxies

This module provides decorators that automatically:
1. Wrap async protocol methods as Temporal activities
2. Generate workflow proxy classes that delegate to activities

Both decorators discover methods the same way, so an activity registered on
the worker always has a proxy method with the same name on the workflow side.
Retry behaviour is chosen per method on the proxy side:

- ``retry_methods`` get a single extra attempt after a fixed 10 second
  backoff (transport failures only; ``non_retryable`` application errors
  are never retried).
- ``no_retry_methods`` run exactly once. Use this for calls with external
  side effects that must not be duplicated, such as dialing a phone.
- every other method uses Temporal's default retry policy, which suits
  idempotent point writes against the store.
"""

import inspect
import functools
import logging
from datetime import timedelta
from enum import Enum
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Type,
    TypeVar,
    Optional,
    get_origin,
    get_args,
)

from temporalio import activity, workflow
from temporalio.common import RetryPolicy
from pydantic import BaseModel

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSPORT_RETRY_POLICY = RetryPolicy(
    initial_interval=timedelta(seconds=10),
    backoff_coefficient=1.0,
    maximum_interval=timedelta(seconds=10),
    maximum_attempts=2,
)

NO_RETRY_POLICY = RetryPolicy(maximum_attempts=1)


def _is_protocol_class(cls: type) -> bool:
    return bool(getattr(cls, "_is_protocol", False))


def _discover_protocol_methods(
    cls_hierarchy: tuple[type, ...],
) -> dict[str, Any]:
    """
    Find the async public methods declared by the protocols in a class
    hierarchy.

    Used by both temporal_activity_registration and temporal_workflow_proxy
    so they operate on the exact same set of methods. When the hierarchy
    contains no protocol, every public async method is used instead.

    Args:
        cls_hierarchy: The class MRO (method resolution order)

    Returns:
        Dict mapping method names to method objects
    """
    methods: dict[str, Any] = {}

    for base_class in cls_hierarchy:
        if base_class is object or not _is_protocol_class(base_class):
            continue
        for name in base_class.__dict__:
            if name in methods or name.startswith("_"):
                continue
            method = getattr(base_class, name)
            if inspect.iscoroutinefunction(method):
                methods[name] = method

    if not methods:
        for base_class in cls_hierarchy:
            if base_class is object:
                continue
            for name in base_class.__dict__:
                if name in methods or name.startswith("_"):
                    continue
                method = getattr(base_class, name)
                if inspect.iscoroutinefunction(method):
                    methods[name] = method

    logger.debug(
        "Protocol method discovery complete",
        extra={
            "classes": [cls.__name__ for cls in cls_hierarchy],
            "methods": list(methods),
        },
    )
    return methods


def temporal_activity_registration(
    activity_prefix: str,
) -> Callable[[Type[T]], Type[T]]:
    """
    Class decorator that wraps every protocol method as a Temporal activity.

    The activity names are the prefix joined with the method name, e.g.
    ``intake.messaging_repo.openphone.send_message``.

    Args:
        activity_prefix: Prefix for activity names

    Returns:
        The decorated class with all async protocol methods wrapped as
        Temporal activities

    Example:
        @temporal_activity_registration("intake.messaging_repo.openphone")
        class TemporalOpenPhoneMessagingRepository(
            OpenPhoneMessagingRepository
        ):
            pass
    """

    def decorator(cls: Type[T]) -> Type[T]:
        wrapped_methods = []

        for name, method in _discover_protocol_methods(cls.__mro__).items():
            activity_name = f"{activity_prefix}.{name}"

            # Look the implementation up on the concrete class so the
            # activity runs the real method, not the protocol stub.
            implementation = getattr(cls, name)

            def create_wrapper_method(
                original_method: Callable[..., Any], method_name: str
            ) -> Callable[..., Any]:
                @functools.wraps(original_method)
                async def wrapper_method(*args: Any, **kwargs: Any) -> Any:
                    return await original_method(*args, **kwargs)

                wrapper_method.__name__ = method_name
                wrapper_method.__qualname__ = f"{cls.__name__}.{method_name}"
                wrapper_method.__annotations__ = getattr(
                    original_method, "__annotations__", {}
                )
                return wrapper_method

            wrapper_method = create_wrapper_method(implementation, name)
            setattr(cls, name, activity.defn(name=activity_name)(wrapper_method))
            wrapped_methods.append(name)

        logger.info(
            f"Temporal activity registration decorator applied to "
            f"{cls.__name__}",
            extra={
                "wrapped_methods": wrapped_methods,
                "activity_prefix": activity_prefix,
            },
        )
        return cls

    return decorator


def temporal_workflow_proxy(
    activity_base: str,
    default_timeout_seconds: int = 30,
    retry_methods: Optional[List[str]] = None,
    no_retry_methods: Optional[List[str]] = None,
    method_timeouts: Optional[Dict[str, int]] = None,
) -> Callable[[Type[T]], Type[T]]:
    """
    Class decorator that implements a protocol inside workflows by
    delegating each method to the matching Temporal activity.

    Args:
        activity_base: Base activity name (e.g. "intake.voice_repo.elevenlabs")
        default_timeout_seconds: start-to-close timeout for activities
        retry_methods: Methods retried once on transport failure
        no_retry_methods: Methods that must run at most once
        method_timeouts: Per-method start-to-close timeouts in seconds

    Returns:
        The decorated class with all protocol methods implemented as
        workflow activity calls

    Example:
        @temporal_workflow_proxy(
            "intake.messaging_repo.openphone",
            default_timeout_seconds=60,
            retry_methods=["send_message"],
        )
        class WorkflowMessagingRepositoryProxy(MessagingRepository):
            pass
    """

    def decorator(cls: Type[T]) -> Type[T]:
        retry_methods_set = set(retry_methods or [])
        no_retry_methods_set = set(no_retry_methods or [])
        overlap = retry_methods_set & no_retry_methods_set
        if overlap:
            raise ValueError(
                f"Methods cannot be both retried and not retried: "
                f"{sorted(overlap)}"
            )
        timeouts = dict(method_timeouts or {})

        methods_to_implement = _discover_protocol_methods(cls.__mro__)
        wrapped_methods = []

        for method_name, original_method in methods_to_implement.items():
            return_annotation = inspect.signature(
                original_method
            ).return_annotation

            if method_name in retry_methods_set:
                retry_policy: Optional[RetryPolicy] = TRANSPORT_RETRY_POLICY
            elif method_name in no_retry_methods_set:
                retry_policy = NO_RETRY_POLICY
            else:
                retry_policy = None

            timeout = timedelta(
                seconds=timeouts.get(method_name, default_timeout_seconds)
            )

            def create_workflow_method(
                method_name: str,
                original_method: Any,
                return_annotation: Any,
                retry_policy: Optional[RetryPolicy],
                timeout: timedelta,
            ) -> Callable[..., Any]:
                @functools.wraps(original_method)
                async def workflow_method(
                    self: Any, *args: Any, **kwargs: Any
                ) -> Any:
                    activity_name = f"{activity_base}.{method_name}"

                    # Repository methods take positional args only
                    if kwargs:
                        raise ValueError(
                            f"kwargs not supported in workflow proxy "
                            f"for {method_name}. Use positional args."
                        )

                    logger.debug(
                        f"Workflow: Calling {method_name} activity",
                        extra={
                            "activity_name": activity_name,
                            "args_count": len(args),
                        },
                    )

                    raw_result = await workflow.execute_activity(
                        activity_name,
                        args=list(args),
                        start_to_close_timeout=timeout,
                        retry_policy=retry_policy,
                    )
                    return _validate_result(return_annotation, raw_result)

                return workflow_method

            setattr(
                cls,
                method_name,
                create_workflow_method(
                    method_name,
                    original_method,
                    return_annotation,
                    retry_policy,
                    timeout,
                ),
            )
            wrapped_methods.append(method_name)

        def __init__(proxy_self: Any) -> None:
            super(cls, proxy_self).__init__()
            proxy_self.activity_timeout = timedelta(
                seconds=default_timeout_seconds
            )

        setattr(cls, "__init__", __init__)

        logger.debug(
            f"Temporal workflow proxy decorator applied to {cls.__name__}",
            extra={
                "wrapped_methods": wrapped_methods,
                "activity_base": activity_base,
                "retry_methods": sorted(retry_methods_set),
                "no_retry_methods": sorted(no_retry_methods_set),
            },
        )
        return cls

    return decorator


def _validate_result(annotation: Any, raw_result: Any) -> Any:
    """Rebuild pydantic and enum return values that arrive as plain data."""
    if raw_result is None:
        return None

    if _is_optional_type(annotation):
        annotation = _get_optional_inner_type(annotation)

    if _is_pydantic_model(annotation):
        if isinstance(raw_result, annotation):
            return raw_result
        return annotation.model_validate(raw_result)

    if inspect.isclass(annotation) and issubclass(annotation, Enum):
        return annotation(raw_result)

    if get_origin(annotation) in (list, List):
        args = get_args(annotation)
        if args and _is_pydantic_model(args[0]):
            item_type = args[0]
            return [
                item
                if isinstance(item, item_type)
                else item_type.model_validate(item)
                for item in raw_result
            ]

    return raw_result


def _is_pydantic_model(type_hint: Any) -> bool:
    """Check if a type is a Pydantic model."""
    return inspect.isclass(type_hint) and issubclass(type_hint, BaseModel)


def _is_optional_type(annotation: Any) -> bool:
    """Check if a type annotation is Optional[T]."""
    origin = get_origin(annotation)
    if origin is None:
        return False
    args = get_args(annotation)
    is_union = (
        getattr(origin, "__name__", "") == "UnionType"
        or str(origin) == "typing.Union"
    )
    return is_union and len(args) == 2 and type(None) in args


def _get_optional_inner_type(annotation: Any) -> Any:
    """Get the inner type from Optional[T]."""
    args = get_args(annotation)
    if len(args) == 2:
        return args[0] if args[1] is type(None) else args[1]
    return annotation
