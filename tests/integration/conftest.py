import shutil
import socket
import ssl
import subprocess

import pytest


@pytest.fixture
def free_port() -> int:
    """A loopback port with nothing listening on it."""

    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def server_tls_context(tmp_path) -> ssl.SSLContext:
    """Server-side TLS context backed by a throwaway self-signed certificate."""

    openssl = shutil.which("openssl")
    if openssl is None:
        pytest.skip("openssl binary is required to create a test certificate")
    cert_path = tmp_path / "cert.pem"
    key_path = tmp_path / "key.pem"
    subprocess.run(
        [
            openssl,
            "req",
            "-x509",
            "-newkey",
            "rsa:2048",
            "-nodes",
            "-keyout",
            str(key_path),
            "-out",
            str(cert_path),
            "-days",
            "1",
            "-subj",
            "/CN=localhost",
        ],
        check=True,
        capture_output=True,
    )
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(cert_path, key_path)
    return context
