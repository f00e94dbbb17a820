import logging

from udprelay.util import LOG, chunk, configure_logging


def test_chunk_splits_long_lines():
    assert chunk("abcdefg", 3) == ["abc", "def", "g"]


def test_chunk_short_and_empty():
    assert chunk("hi", 83) == ["hi"]
    assert chunk("", 83) == [""]


def test_configure_logging_is_idempotent(tmp_path):
    logfile = tmp_path / "relay.log"

    configure_logging(logging.DEBUG, str(logfile))
    configure_logging(logging.DEBUG, str(logfile))

    assert len(LOG.handlers) == 2
    LOG.info("hello")
    for handler in LOG.handlers:
        handler.flush()
    assert "hello" in logfile.read_text(encoding="utf-8")

    configure_logging(logging.INFO, None, console=False)
    assert all(isinstance(h, logging.NullHandler) for h in LOG.handlers)
