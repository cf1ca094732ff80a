"""Tests for small utilities."""

import asyncio
import io
import logging

import pytest

from speardrive.utils.logging import create_stream_handler
from speardrive.utils.logging.build_logger import BuildLogger
from speardrive.utils.str import fuse_with_slashes, is_safe_relative_path, is_safe_segment
from speardrive.utils.tasks import run_all


class TestRunAll:
    async def test_results_in_order(self):
        async def value(x: int, delay: float) -> int:
            await asyncio.sleep(delay)
            return x

        assert await run_all([value(1, 0.03), value(2, 0.0), value(3, 0.01)]) == [1, 2, 3]

    async def test_failure_unwrapped_and_others_cancelled(self):
        cancelled = asyncio.Event()

        async def fails() -> None:
            raise KeyError("first")

        async def slow() -> None:
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        with pytest.raises(KeyError):
            await run_all([slow(), fails()])
        assert cancelled.is_set()

    async def test_empty(self):
        assert await run_all([]) == []


def test_fuse_with_slashes():
    assert fuse_with_slashes("http://a/", "/b/", "c") == "http://a/b/c"
    assert fuse_with_slashes("http://a") == "http://a"


@pytest.mark.parametrize("segment", ["foo", "foo-1.0.x86_64.rpm", "v1+git~2@x", "-"])
def test_safe_segments(segment: str):
    assert is_safe_segment(segment)


@pytest.mark.parametrize("segment", ["", ".", "..", "a/b", "a b", "a\0", "ä"])
def test_unsafe_segments(segment: str):
    assert not is_safe_segment(segment)


@pytest.mark.parametrize("rel_path", ["a", "a/b/c.rpm", "a/.hidden", "a/..b"])
def test_safe_relative_paths(rel_path: str):
    assert is_safe_relative_path(rel_path)


@pytest.mark.parametrize("rel_path", ["", "/a", "a/", "a/../b", "./a", "a\\b", "a\0b"])
def test_unsafe_relative_paths(rel_path: str):
    assert not is_safe_relative_path(rel_path)


def test_log_context():
    out = io.StringIO()
    logger = logging.getLogger("speardrive.test_log_context")
    logger.propagate = False
    logger.addHandler(create_stream_handler(out))
    logger.setLevel(logging.INFO)

    logger.info("plain")
    logger.info("with context", extra=dict(composite="abc123", source="myserver/foo/1"))

    (plain, with_context) = out.getvalue().splitlines()
    assert plain.endswith("] speardrive.test_log_context: plain")
    assert " abc123/myserver/foo/1] " in with_context


def test_build_logger():
    out = io.StringIO()
    log_io = BuildLogger(out)
    log_io.info("hello")
    try:
        raise ValueError("oops")
    except ValueError:
        log_io.exception("failed")

    lines = out.getvalue().splitlines()
    assert lines[0].startswith("[speardrive @ ")
    assert lines[0].endswith(" INFO] hello")
    assert lines[1].endswith("ERROR] failed")
    assert "ValueError: oops" in out.getvalue()
