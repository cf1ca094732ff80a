# asyncio task helpers.
# Copyright (C) 2025  The speardrive developers

# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.

# You should have received a copy of the GNU Affero General Public License
# along with this program.  If not, see <http://www.gnu.org/licenses/>.

"""
This module contains helpers for running groups of coroutines.
"""

import asyncio
import typing as T


def _first_leaf(group: BaseExceptionGroup[BaseException]) -> BaseException:
    exc = group.exceptions[0]
    while isinstance(exc, BaseExceptionGroup):
        exc = exc.exceptions[0]
    return exc


async def run_all[R](coros: T.Iterable[T.Coroutine[T.Any, T.Any, R]]) -> list[R]:
    """
    Run ``coros`` concurrently, returning their results in order.

    If any of them fails, the rest are cancelled, and the first failure is re-raised
    as-is, rather than wrapped in an :py:class:`ExceptionGroup`.
    """
    try:
        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(coro) for coro in coros]
    except BaseExceptionGroup as eg:
        raise _first_leaf(eg) from None
    return [task.result() for task in tasks]
