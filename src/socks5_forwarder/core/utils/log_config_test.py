import sys

import pytest
from loguru import logger

from socks5_forwarder.core.utils.log_config import setup_logging


@pytest.fixture(autouse=True)
def restore_logger():
    yield
    logger.remove()
    logger.add(sys.stderr)


def test_file_sink_carries_connection_context(tmp_path):
    setup_logging(log_dir=tmp_path)

    logger.info("outside any connection")
    with logger.contextualize(conn=7, peer="127.0.0.1:5555"):
        logger.debug("handshake done")

    content = (tmp_path / "forwarder.log").read_text()
    assert "conn=- peer=- |" in content
    assert "conn=7 peer=127.0.0.1:5555 |" in content
    assert "handshake done" in content


def test_no_file_sink(tmp_path):
    setup_logging(debug=True, log_dir=None)

    logger.debug("console only")

    assert list(tmp_path.iterdir()) == []
