"""Immutable server configuration and the blocking uvicorn serve loop."""

import asyncio
import sys

import h11
import uvicorn
from fastapi import FastAPI
from pydantic import BaseModel, ConfigDict, Field
from uvicorn.protocols.http.h11_impl import H11Protocol

from paysim.common.config import PaySimSettings
from paysim.common.logging import logger


class ServerConfig(BaseModel):
    """Listen address and per-connection timeouts, built once at startup."""

    model_config = ConfigDict(frozen=True)

    host: str = "0.0.0.0"
    port: int = Field(default=8080, ge=0, le=65535)
    read_timeout: float = Field(default=30.0, gt=0)
    read_header_timeout: float = Field(default=10.0, gt=0)
    write_timeout: float = Field(default=30.0, gt=0)

    @classmethod
    def from_address(cls, addr: str) -> "ServerConfig":
        """Build a config from a `host:port` address; an empty host binds all interfaces."""

        host, sep, port = addr.rpartition(":")
        if not sep or not port.isdigit():
            raise ValueError(f"invalid listen address: {addr!r}")
        host = host.strip("[]") or "0.0.0.0"
        return cls(host=host, port=int(port))

    @classmethod
    def from_settings(cls, settings: PaySimSettings) -> "ServerConfig":
        return cls(
            host=settings.host,
            port=settings.port,
            read_timeout=settings.read_timeout_seconds,
            read_header_timeout=settings.read_header_timeout_seconds,
            write_timeout=settings.write_timeout_seconds,
        )

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


class HeaderTimeoutH11Protocol(H11Protocol):
    """h11 protocol that closes connections which do not deliver request headers in time.

    The deadline starts when the connection opens and again whenever the
    connection goes idle between requests; it is cleared once the request
    line and headers have been parsed.
    """

    read_header_timeout: float = 10.0

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.header_timeout_task: asyncio.TimerHandle | None = None

    def connection_made(self, transport: asyncio.Transport) -> None:
        super().connection_made(transport)
        self._arm_header_timeout()

    def connection_lost(self, exc: Exception | None) -> None:
        self._cancel_header_timeout()
        super().connection_lost(exc)

    def handle_events(self) -> None:
        super().handle_events()
        if self.conn.their_state is h11.IDLE and self.conn.our_state is h11.IDLE:
            self._arm_header_timeout()
        else:
            self._cancel_header_timeout()

    def _arm_header_timeout(self) -> None:
        if self.header_timeout_task is None and not self.transport.is_closing():
            self.header_timeout_task = self.loop.call_later(self.read_header_timeout, self._header_timeout_handler)

    def _cancel_header_timeout(self) -> None:
        if self.header_timeout_task is not None:
            self.header_timeout_task.cancel()
            self.header_timeout_task = None

    def _header_timeout_handler(self) -> None:
        self.header_timeout_task = None
        self.logger.debug("request headers not received within %ss, closing %s", self.read_header_timeout, self.client)
        # Same close path uvicorn uses for idle keep-alive connections.
        self.timeout_keep_alive_handler()


def header_timeout_protocol(read_header_timeout: float) -> type[HeaderTimeoutH11Protocol]:
    """Return a protocol class bound to one header timeout, for `uvicorn.Config(http=...)`."""

    return type(
        "HeaderTimeoutH11Protocol",
        (HeaderTimeoutH11Protocol,),
        {"read_header_timeout": read_header_timeout},
    )


def uvicorn_config(app: FastAPI, config: ServerConfig, log_level: str = "info") -> uvicorn.Config:
    """Translate a `ServerConfig` into uvicorn settings.

    Body reads and response writes are bounded by the app's timeout
    middleware; header reads are bounded by the connection protocol.
    """

    return uvicorn.Config(
        app,
        host=config.host,
        port=config.port,
        http=header_timeout_protocol(config.read_header_timeout),
        timeout_keep_alive=config.read_header_timeout,
        access_log=False,
        log_config=None,
        log_level=log_level.lower(),
    )


def log_startup_config(service_name: str, config: ServerConfig) -> None:
    """Log the effective server configuration for quick troubleshooting."""

    logger.info("startup_config=%s", {"service": service_name, **config.model_dump()})


def serve(app: FastAPI, config: ServerConfig, log_level: str = "info") -> None:
    """Serve `app` until shutdown; exit the process on any fatal server error."""

    server = uvicorn.Server(uvicorn_config(app, config, log_level))
    logger.info("starting http server on %s", config.address)
    try:
        server.run()
    except Exception:
        logger.exception("http server failed on %s", config.address)
        sys.exit(1)
    if not server.started:
        logger.critical("http server failed to start on %s", config.address)
        sys.exit(1)
    logger.info("http server on %s stopped", config.address)
