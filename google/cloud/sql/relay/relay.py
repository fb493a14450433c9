"""
Copyright 2026 Google LLC

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

  https://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.
"""

from __future__ import annotations

import asyncio
from enum import Enum
import logging
from typing import Optional

logger = logging.getLogger(name=__name__)

LOCAL_HOST = "127.0.0.1"
RELAY_CHUNK_SIZE = 16384
_STOP_TIMEOUT = 1


class RelayState(Enum):
    CREATED = "CREATED"
    LISTENING = "LISTENING"
    FORWARDING = "FORWARDING"
    STOPPED = "STOPPED"


def _close_quietly(writer: Optional[asyncio.StreamWriter]) -> None:
    if writer is None:
        return
    try:
        writer.close()
    except (OSError, RuntimeError):
        # already closed, or its event loop is gone
        pass


class Relay:
    """Bridges one plaintext loopback client to one established TLS session.

    The relay listens on an OS-assigned port on 127.0.0.1 and accepts exactly
    one client; the listening socket is closed as soon as that client
    arrives. Bytes are then copied in both directions without inspection.
    When either side reaches end-of-stream or fails, the opposite side is
    closed so the paired forwarding task unblocks and ends too.
    """

    def __init__(
        self,
        remote_reader: asyncio.StreamReader,
        remote_writer: asyncio.StreamWriter,
        name: str = "",
    ) -> None:
        """
        Args:
            remote_reader (asyncio.StreamReader): Read side of the TLS
                session to the Cloud SQL instance.
            remote_writer (asyncio.StreamWriter): Write side of the TLS
                session to the Cloud SQL instance.
            name (str): Instance connection name, used in log messages.
        """
        self._remote_reader = remote_reader
        self._remote_writer = remote_writer
        self._name = name
        self._server: Optional[asyncio.AbstractServer] = None
        self._client_writer: Optional[asyncio.StreamWriter] = None
        self._tasks: list[asyncio.Task] = []
        self._port: Optional[int] = None
        self._state = RelayState.CREATED

    @property
    def port(self) -> Optional[int]:
        """Local port the relay listens on, set once start() has bound it."""
        return self._port

    @property
    def state(self) -> RelayState:
        return self._state

    @property
    def accepted(self) -> bool:
        return self._client_writer is not None

    @property
    def alive(self) -> bool:
        return self._state in (RelayState.LISTENING, RelayState.FORWARDING)

    async def start(self) -> int:
        """Bind the loopback listener and start accepting. Returns the port."""
        if self._state != RelayState.CREATED:
            raise RuntimeError(f"Relay can not be started from state {self._state.value}")
        self._server = await asyncio.start_server(
            self._accept, host=LOCAL_HOST, port=0
        )
        self._port = self._server.sockets[0].getsockname()[1]
        self._state = RelayState.LISTENING
        logger.debug(f"['{self._name}']: Relay listening on {LOCAL_HOST}:{self._port}")
        return self._port

    async def _accept(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        # a second client may slip in before the listener is closed
        if self._state != RelayState.LISTENING or self.accepted:
            _close_quietly(writer)
            return
        self._client_writer = writer
        self._state = RelayState.FORWARDING
        if self._server is not None:
            self._server.close()
        logger.debug(f"['{self._name}']: Relay accepted local client")
        self._tasks = [
            asyncio.create_task(self._forward(reader, self._remote_writer)),
            asyncio.create_task(self._forward(self._remote_reader, writer)),
        ]
        await asyncio.gather(*self._tasks, return_exceptions=True)
        await self._shutdown()

    async def _forward(
        self, src: asyncio.StreamReader, dst: asyncio.StreamWriter
    ) -> None:
        try:
            while True:
                data = await src.read(RELAY_CHUNK_SIZE)
                if not data:
                    break
                dst.write(data)
                await dst.drain()
        except (OSError, asyncio.IncompleteReadError) as e:
            logger.debug(f"['{self._name}']: Relay stream ended: {e}")
        finally:
            # unblock the paired task by closing the other leg
            _close_quietly(dst)

    async def _shutdown(self) -> None:
        if self._state == RelayState.STOPPED:
            return
        self._state = RelayState.STOPPED
        if self._server is not None:
            self._server.close()
        _close_quietly(self._remote_writer)
        _close_quietly(self._client_writer)
        logger.debug(f"['{self._name}']: Relay stopped")

    async def stop(self) -> None:
        """Stop forwarding and release both sockets and the listener.

        Safe to call from any state and more than once.
        """
        await self._shutdown()
        current = asyncio.current_task()
        pending = [t for t in self._tasks if t is not current and not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        if self._server is not None:
            try:
                await asyncio.wait_for(
                    self._server.wait_closed(), timeout=_STOP_TIMEOUT
                )
            except (asyncio.TimeoutError, OSError):
                # remaining transports are closed already and finish on their own
                pass
