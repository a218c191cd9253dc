"""
Process lifecycle for the HTTP server.

    STARTING -> RUNNING -> DRAINING -> STOPPED

The uvicorn server runs as its own asyncio task while the controller
waits for a shutdown request (SIGINT/SIGTERM, or ``request_shutdown()``).
Draining stops the listener and gives in-flight requests a bounded window
to finish; whatever is still running at the deadline is cancelled.
"""

import asyncio
import contextlib
import signal
import socket
from enum import Enum
from typing import Optional

import structlog
import uvicorn

logger = structlog.get_logger(__name__)

# Extra time granted to uvicorn after the drain window for closing
# listeners and running the lifespan shutdown.
SHUTDOWN_GRACE_SECONDS = 5.0

# Poll interval while waiting for uvicorn to report started.
_STARTUP_POLL_SECONDS = 0.05


class LifecycleState(str, Enum):
    STARTING = "starting"
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


class StartupError(Exception):
    """The listener could not be bound or the server failed to start."""


class ServeError(Exception):
    """The server stopped while it was supposed to be serving."""


class ShutdownError(Exception):
    """Graceful shutdown failed or exceeded the drain window."""


class _Server(uvicorn.Server):
    """uvicorn server that leaves signal handling to the controller."""

    @contextlib.contextmanager
    def capture_signals(self):
        yield


def bind_socket(host: str, port: int) -> socket.socket:
    """Bind a listening TCP socket, raising StartupError on failure."""
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
        sock.listen(socket.SOMAXCONN)
    except OSError as e:
        sock.close()
        raise StartupError(f"cannot listen on {host}:{port}: {e}") from e
    sock.setblocking(False)
    return sock


class LifecycleController:
    """Drives the HTTP server through startup, serving and graceful shutdown."""

    def __init__(
        self,
        app,
        host: str = "0.0.0.0",
        port: int = 8080,
        drain_timeout: float = 10.0,
    ):
        self.app = app
        self.host = host
        self.port = port
        self.drain_timeout = drain_timeout
        self.state = LifecycleState.STARTING

        self.bound_port: Optional[int] = None

        self._sock: Optional[socket.socket] = None
        self._server: Optional[_Server] = None
        self._serve_task: Optional[asyncio.Task] = None
        self._shutdown_requested = asyncio.Event()

    async def start(self) -> None:
        """Bind the listener and start serving. Returns once RUNNING."""
        self._sock = bind_socket(self.host, self.port)
        # Differs from self.port when started with port 0
        self.bound_port = self._sock.getsockname()[1]

        config = uvicorn.Config(
            self.app,
            log_config=None,
            access_log=False,
            # The drain deadline is enforced by drain(), not uvicorn
            timeout_graceful_shutdown=None,
        )
        self._server = _Server(config)
        self._serve_task = asyncio.create_task(self._server.serve(sockets=[self._sock]))

        while not self._server.started:
            if self._serve_task.done():
                self.state = LifecycleState.STOPPED
                exc = self._serve_task.exception()
                raise StartupError(f"server exited during startup: {exc}") from exc
            await asyncio.sleep(_STARTUP_POLL_SECONDS)

        self.state = LifecycleState.RUNNING
        logger.info("Listening", host=self.host, port=self.bound_port)

    def request_shutdown(self) -> None:
        """Ask the controller to leave RUNNING. Safe to call more than once."""
        if not self._shutdown_requested.is_set():
            logger.info("Shutdown requested")
        self._shutdown_requested.set()

    def install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self.request_shutdown)

    def remove_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)

    async def wait(self) -> None:
        """Block while RUNNING until shutdown is requested.

        Raises ServeError if the server stops on its own.
        """
        waiter = asyncio.create_task(self._shutdown_requested.wait())
        done, _ = await asyncio.wait(
            {waiter, self._serve_task}, return_when=asyncio.FIRST_COMPLETED
        )
        if waiter in done:
            return

        waiter.cancel()
        self.state = LifecycleState.STOPPED
        exc = self._serve_task.exception()
        if exc is None:
            raise ServeError("server stopped unexpectedly")
        raise ServeError(f"server stopped unexpectedly: {exc}") from exc

    async def drain(self) -> None:
        """Stop accepting connections and wait for in-flight requests.

        Requests still running ``drain_timeout`` seconds after draining
        starts are cancelled here and counted as abandoned; any abandoned
        request, or a failing shutdown, raises ShutdownError. The
        controller ends in STOPPED either way.
        """
        self.state = LifecycleState.DRAINING
        logger.info(
            "Draining",
            in_flight=len(self._server.server_state.tasks),
            timeout=self.drain_timeout,
        )
        self._server.should_exit = True

        abandoned = 0
        try:
            _, pending = await asyncio.wait({self._serve_task}, timeout=self.drain_timeout)
            if pending:
                abandoned = self._cancel_requests()
            await asyncio.wait_for(self._serve_task, timeout=SHUTDOWN_GRACE_SECONDS)
        except asyncio.TimeoutError as e:
            self._server.force_exit = True
            raise ShutdownError("server did not shut down in time") from e
        except Exception as e:
            raise ShutdownError(f"shutdown failed: {e}") from e
        finally:
            self.state = LifecycleState.STOPPED

        if abandoned:
            raise ShutdownError(
                f"{abandoned} request(s) still running after {self.drain_timeout}s drain window"
            )
        logger.info("Stopped")

    def _cancel_requests(self) -> int:
        running = [t for t in self._server.server_state.tasks if not t.done()]
        if running:
            logger.error("Drain window exceeded, cancelling requests", count=len(running))
        for task in running:
            task.cancel()
        return len(running)

    async def run(self) -> None:
        """Serve until interrupted, then drain."""
        await self.start()
        self.install_signal_handlers()
        try:
            await self.wait()
        finally:
            self.remove_signal_handlers()
        await self.drain()
