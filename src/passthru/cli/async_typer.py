"""Typer app that accepts ``async def`` commands."""

from __future__ import annotations

import asyncio
import inspect
from functools import wraps
from typing import Any, Callable

import typer


class AsyncTyper(typer.Typer):
    """Typer whose ``command`` decorator runs coroutine functions with asyncio."""

    def command(self, *args: Any, **kwargs: Any) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        register = super().command(*args, **kwargs)

        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            if inspect.iscoroutinefunction(fn):
                @wraps(fn)
                def runner(*a: Any, **kw: Any) -> Any:
                    return asyncio.run(fn(*a, **kw))

                register(runner)
            else:
                register(fn)
            return fn

        return decorator
