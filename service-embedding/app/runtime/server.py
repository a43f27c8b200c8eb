"""uvicorn server wiring for the embedding service."""

import asyncio
import os
import signal
import sys
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional

import uvicorn
import structlog

from libs.common.config import EmbeddingConfig
from .transport import TransportDecision, TransportMode

logger = structlog.get_logger("embedding_service.server")

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def _signal_name(sig: int) -> str:
    try:
        return signal.Signals(sig).name
    except ValueError:
        return str(sig)


def exit_immediately(sig: int) -> None:
    """Log the signal and terminate the process with status 0.

    Uses ``os._exit`` so a model load still running in an executor thread is
    not awaited.
    """
    logger.info("Received shutdown signal, exiting", signal=_signal_name(sig))
    sys.stdout.flush()
    sys.stderr.flush()
    os._exit(0)


@contextmanager
def immediate_exit_on_signals(loop: asyncio.AbstractEventLoop) -> Iterator[None]:
    """Exit with status 0 on SIGINT/SIGTERM while the block runs.

    Covers startup work that happens before uvicorn installs its own
    handlers. The handlers are removed on exit from the block.
    """
    installed: List[int] = []
    for sig in SHUTDOWN_SIGNALS:
        try:
            loop.add_signal_handler(sig, exit_immediately, sig)
        except NotImplementedError:
            # Event loops on Windows have no signal handler support
            continue
        installed.append(sig)
    try:
        yield
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


class ImmediateExitServer(uvicorn.Server):
    """uvicorn server that exits on the first SIGINT/SIGTERM.

    In-flight requests are not drained and the signal is not re-raised after
    shutdown, so the process exits with status 0.
    """

    def handle_exit(self, sig: int, frame: Optional[Any]) -> None:
        logger.info("Received shutdown signal, exiting", signal=_signal_name(sig))
        self.should_exit = True
        self.force_exit = True


def build_server_config(
    app: Any,
    config: EmbeddingConfig,
    transport: TransportDecision,
) -> uvicorn.Config:
    """Create the uvicorn config for the resolved transport."""
    options = {
        "host": config.ml_embedding_host,
        "port": config.ml_embedding_port,
        "log_level": config.ml_log_level.lower(),
        "log_config": None,
        "lifespan": "on",
    }
    if transport.mode is TransportMode.HTTPS:
        options["ssl_keyfile"] = transport.keyfile
        options["ssl_certfile"] = transport.certfile
    return uvicorn.Config(app, **options)


def log_transport(transport: TransportDecision, config: EmbeddingConfig) -> None:
    """Emit the startup log lines for a transport decision."""
    base_url = f"{transport.scheme}://localhost:{config.ml_embedding_port}"

    for diagnostic in transport.diagnostics:
        logger.warning("TLS setup problem", detail=diagnostic)

    if transport.fell_back:
        logger.warning(
            "Falling back to HTTP; provide a certificate via ML_SSL_KEY_PATH and ML_SSL_CERT_PATH to enable HTTPS",
            key_path=config.ml_ssl_key_path,
            cert_path=config.ml_ssl_cert_path,
        )
    elif transport.mode is TransportMode.HTTP:
        logger.info("TLS disabled by configuration (set ML_USE_SSL=true to enable HTTPS)")

    logger.info(
        "Embedding service listening",
        mode=transport.scheme,
        port=config.ml_embedding_port,
        endpoints=[
            f"GET  {base_url}/health",
            f"POST {base_url}/v1/embeddings",
            f"POST {base_url}/embed",
            f"POST {base_url}/rerank",
        ],
    )
