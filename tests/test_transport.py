"""Tests for transport resolution and server wiring."""

import asyncio
import datetime
import os
import signal
import subprocess
import sys
import textwrap
import time
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from app.main import create_app, serve
from app.runtime.server import ImmediateExitServer, build_server_config, immediate_exit_on_signals
from app.runtime.transport import TransportMode, resolve_transport
from libs.common.config import EmbeddingConfig
from libs.common.errors import ModelInitializationError


PROJECT_ROOT = Path(__file__).resolve().parent.parent

SLOW_LOAD_SCRIPT = textwrap.dedent(
    """
    import asyncio
    import sys
    import time

    from app.main import create_app, serve
    from libs.common.config import EmbeddingConfig

    def slow_loader():
        print("LOADING", flush=True)
        time.sleep(60)

    config = EmbeddingConfig(ml_use_ssl=False, ml_api_key="k", ml_embedding_port=0)
    sys.exit(asyncio.run(serve(config, create_app(config, encoder_loader=slow_loader))))
    """
)


def write_self_signed(directory):
    """Write a throwaway key/cert pair for localhost and return their paths."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "localhost")])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=1))
        .sign(key, hashes.SHA256())
    )

    key_path = directory / "key.pem"
    cert_path = directory / "cert.pem"
    key_path.write_bytes(
        key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    cert_path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
    return str(key_path), str(cert_path)


def test_plaintext_when_tls_disabled(tmp_path):
    decision = resolve_transport(False, str(tmp_path / "key.pem"), str(tmp_path / "cert.pem"))

    assert decision.mode is TransportMode.HTTP
    assert decision.requested is False
    assert decision.fell_back is False
    assert decision.diagnostics == []


def test_falls_back_when_certificates_missing(tmp_path):
    decision = resolve_transport(True, str(tmp_path / "key.pem"), str(tmp_path / "cert.pem"))

    assert decision.mode is TransportMode.HTTP
    assert decision.fell_back is True
    assert len(decision.diagnostics) == 2
    assert all("not found" in diagnostic for diagnostic in decision.diagnostics)
    assert decision.keyfile is None


def test_falls_back_when_only_certificate_missing(tmp_path):
    key_path, _ = write_self_signed(tmp_path)

    decision = resolve_transport(True, key_path, str(tmp_path / "missing.pem"))

    assert decision.mode is TransportMode.HTTP
    assert decision.diagnostics == [f"Certificate not found: {tmp_path / 'missing.pem'}"]


def test_falls_back_when_material_is_garbage(tmp_path):
    key_path = tmp_path / "key.pem"
    cert_path = tmp_path / "cert.pem"
    key_path.write_text("not a key")
    cert_path.write_text("not a certificate")

    decision = resolve_transport(True, str(key_path), str(cert_path))

    assert decision.mode is TransportMode.HTTP
    assert decision.fell_back is True
    assert "could not be loaded" in decision.diagnostics[0]


def test_falls_back_when_path_is_a_directory(tmp_path):
    _, cert_path = write_self_signed(tmp_path)

    decision = resolve_transport(True, str(tmp_path), cert_path)

    assert decision.mode is TransportMode.HTTP
    assert "not a regular file" in decision.diagnostics[0]


def test_https_with_valid_material(tmp_path):
    key_path, cert_path = write_self_signed(tmp_path)

    decision = resolve_transport(True, key_path, cert_path)

    assert decision.mode is TransportMode.HTTPS
    assert decision.scheme == "https"
    assert decision.keyfile == key_path
    assert decision.certfile == cert_path
    assert decision.diagnostics == []


def test_server_config_carries_tls_paths(tmp_path):
    key_path, cert_path = write_self_signed(tmp_path)
    config = EmbeddingConfig(ml_use_ssl=True, ml_embedding_port=9443)
    decision = resolve_transport(True, key_path, cert_path)

    server_config = build_server_config(object(), config, decision)

    assert server_config.port == 9443
    assert server_config.ssl_keyfile == key_path
    assert server_config.ssl_certfile == cert_path


def test_server_config_plaintext_has_no_tls(tmp_path):
    config = EmbeddingConfig(ml_use_ssl=True)
    decision = resolve_transport(True, str(tmp_path / "k"), str(tmp_path / "c"))

    server_config = build_server_config(object(), config, decision)

    assert server_config.ssl_keyfile is None
    assert server_config.ssl_certfile is None


@pytest.mark.parametrize("sig", [signal.SIGINT, signal.SIGTERM])
def test_signal_triggers_immediate_exit(sig):
    config = EmbeddingConfig(ml_use_ssl=False)
    decision = resolve_transport(False, "k", "c")
    server = ImmediateExitServer(build_server_config(object(), config, decision))

    server.handle_exit(sig, None)

    assert server.should_exit is True
    assert server.force_exit is True
    assert getattr(server, "_captured_signals", []) == []


@pytest.mark.asyncio
async def test_serve_exits_nonzero_when_model_fails_to_load():
    def broken_loader():
        raise RuntimeError("no weights")

    config = EmbeddingConfig(ml_use_ssl=False, ml_api_key="k")
    app = create_app(config, encoder_loader=broken_loader)

    exit_code = await serve(config, app)

    assert exit_code == 1
    with pytest.raises(ModelInitializationError):
        await app.state.model_manager.ensure_ready()


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
@pytest.mark.parametrize("sig", [signal.SIGINT, signal.SIGTERM])
def test_signal_during_model_load_exits_zero(tmp_path, sig):
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(
        [str(PROJECT_ROOT), str(PROJECT_ROOT / "service-embedding"), env.get("PYTHONPATH", "")]
    )
    process = subprocess.Popen(
        [sys.executable, "-c", SLOW_LOAD_SCRIPT],
        cwd=tmp_path,
        env=env,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
    )
    try:
        for line in process.stdout:
            if "LOADING" in line:
                break
        started = time.monotonic()
        process.send_signal(sig)
        output, _ = process.communicate(timeout=20)
    finally:
        if process.poll() is None:
            process.kill()
            process.wait()

    assert process.returncode == 0
    assert time.monotonic() - started < 10
    assert "Traceback" not in output
    assert "KeyboardInterrupt" not in output


@pytest.mark.asyncio
async def test_preload_signal_handlers_are_removed_after_block():
    loop = asyncio.get_running_loop()

    with immediate_exit_on_signals(loop):
        pass

    assert loop.remove_signal_handler(signal.SIGINT) is False
    assert loop.remove_signal_handler(signal.SIGTERM) is False
