"""
Option groups for Typer callbacks.

A provider describes its options once as ``OptionSpec`` entries and gets a
decorator that adds them to a callback's signature. When the callback runs,
the values are collected under one key of ``ctx.obj`` (``'rabbitmq'``,
``'logging'``) so the callback itself never declares them.
"""

import inspect
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Dict, Optional, Sequence

OptionValues = Dict[str, Any]


@dataclass(frozen=True)
class OptionSpec:
    """One injected option.

    Attributes:
        name: Keyword the option is passed as (``rabbitmq_host`` becomes
            ``--rabbitmq-host``)
        annotation: ``Annotated`` type carrying the ``typer.Option``
        default: Default used when the flag is absent
        key: Key in the collected values (defaults to ``name``)
    """

    name: str
    annotation: Any
    default: Any = None
    key: Optional[str] = None

    @property
    def value_key(self) -> str:
        return self.key or self.name

    def parameter(self) -> inspect.Parameter:
        return inspect.Parameter(
            self.name,
            inspect.Parameter.KEYWORD_ONLY,
            default=self.default,
            annotation=self.annotation,
        )


def option_group(
    context_key: str,
    specs: Sequence[OptionSpec],
    resolve: Optional[Callable[[OptionValues], OptionValues]] = None,
) -> Callable[[Callable], Callable]:
    """
    Build a decorator that injects ``specs`` into a Typer callback.

    Args:
        context_key: Key the collected values are stored under in ``ctx.obj``
        specs: Options to add, in the order they appear in ``--help``
        resolve: Optional post-processing of the collected values, e.g. to
            let environment variables override flags

    Raises:
        ValueError: If an option name clashes with a callback parameter
    """
    def decorator(func: Callable) -> Callable:
        sig = inspect.signature(func)
        taken = set(sig.parameters)
        clashes = [spec.name for spec in specs if spec.name in taken]
        if clashes:
            raise ValueError(f"{func.__name__} already has parameters {clashes}")

        @wraps(func)
        def wrapper(*args, **kwargs):
            values = {
                spec.value_key: kwargs.pop(spec.name, spec.default) for spec in specs
            }
            if resolve is not None:
                values = resolve(values)

            ctx = args[0] if args else kwargs.get('ctx')
            if ctx is not None:
                ctx.ensure_object(dict)
                ctx.obj[context_key] = values
            return func(*args, **kwargs)

        params = list(sig.parameters.values()) + [spec.parameter() for spec in specs]
        wrapper.__signature__ = sig.replace(parameters=params)
        return wrapper

    return decorator
