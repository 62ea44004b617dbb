"""Pytest configuration and fixtures."""
import queue
import socket
import socketserver
import stat
import threading
from pathlib import Path

import pytest

from sourcedex.utils.logging import logger


@pytest.fixture
def source_tree(tmp_path):
    """Create a small source root with three projects and a hidden directory."""
    src = tmp_path / "src"
    (src / "alpha").mkdir(parents=True)
    (src / "beta" / "lib").mkdir(parents=True)
    (src / "gamma").mkdir()
    (src / ".hidden").mkdir()

    (src / "alpha" / "main.c").write_text(
        "#include <stdio.h>\n"
        "int main(void) {\n"
        "    printf(\"hello\");\n"
        "    return 0;\n"
        "}\n"
    )
    (src / "beta" / "lib" / "util.py").write_text(
        "def helper(value):\n"
        "    return value + value\n"
    )
    (src / "gamma" / "README").write_text("gamma project readme\n")
    (src / ".hidden" / "secret.txt").write_text("not a project\n")
    (src / "top.txt").write_text("a file, not a project\n")
    return src


@pytest.fixture
def data_root(tmp_path):
    """Create an empty data root."""
    data = tmp_path / "data"
    data.mkdir()
    return data


def _write_script(path: Path, body: str) -> Path:
    path.write_text("#!/bin/sh\n" + body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def fake_ctags(tmp_path):
    """An executable that answers --version like Universal Ctags."""
    return str(_write_script(
        tmp_path / "ctags",
        'echo "Universal Ctags 6.0.0, Copyright (C) 2015-2022 Universal Ctags Team"\n',
    ))


@pytest.fixture
def not_ctags(tmp_path):
    """An executable that runs fine but is not a supported ctags."""
    return str(_write_script(tmp_path / "etags", 'echo "etags (GNU Emacs 29.1)"\n'))


@pytest.fixture
def log_messages():
    """Collect loguru messages emitted during the test."""
    messages: list[str] = []
    handler_id = logger.add(lambda message: messages.append(message.record["message"]),
                            level="DEBUG")
    yield messages
    logger.remove(handler_id)


class _PayloadHandler(socketserver.StreamRequestHandler):
    def handle(self):
        self.server.payloads.put(self.rfile.read())


@pytest.fixture
def config_listener():
    """In-process TCP listener that queues every payload it receives.

    Yields (host, port, payload_queue).
    """
    server = socketserver.ThreadingTCPServer(("127.0.0.1", 0), _PayloadHandler)
    server.daemon_threads = True
    server.payloads = queue.Queue()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()

    host, port = server.server_address
    yield host, port, server.payloads

    server.shutdown()
    server.server_close()
    thread.join(timeout=5)


@pytest.fixture
def closed_port():
    """A localhost port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]
