import sys
import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional, Dict, Any, BinaryIO, Callable, TextIO

from aider_mcp.aider.service import AiderToolService
from aider_mcp.core.config import AiderMcpConfig
from aider_mcp.reconcile.reconciler import ResultReconciler

from .handlers import McpDispatcher
from .protocol import INTERNAL_ERROR, SERVER_BUSY

logger = logging.getLogger("AiderMCP.mcp.server")


class McpServer:
    """
    Handles JSON-RPC communication over stdio with thread-pooled dispatching.

    Only tools/call is moved off the read loop (when `background_tool_calls`
    is set). Everything else is answered inline so lifecycle ordering holds.
    """
    def __init__(
        self,
        dispatch_fn: Optional[Callable[[Dict[str, Any]], None]] = None,
        max_workers: int = 8,
        queue_limit: Optional[int] = None,
        background_tool_calls: bool = True,
        output: Optional[TextIO] = None,
    ):
        self.dispatch_fn = dispatch_fn
        self.max_workers = max(1, max_workers)
        self.queue_limit = max(self.max_workers, queue_limit or self.max_workers * 8)
        self.background_tool_calls = background_tool_calls
        self.output = output

        self.transport_closed = threading.Event()
        self.write_lock = threading.Lock()

        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()
        self._queue_semaphore = threading.BoundedSemaphore(self.queue_limit)

    def get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.max_workers,
                    thread_name_prefix="aider-mcp-dispatch",
                )
            return self._executor

    def stop(self, wait: bool = False):
        """Shut down the dispatcher and close transport."""
        if not wait:
            self.transport_closed.set()
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait, cancel_futures=not wait)
        self.transport_closed.set()

    def send_rpc(self, message: Dict[str, Any]) -> None:
        """Serialize and send a JSON-RPC message to stdout."""
        if self.transport_closed.is_set():
            return

        try:
            serialized = json.dumps(message)
            with self.write_lock:
                if self.transport_closed.is_set():
                    return
                stream = self.output or sys.stdout
                stream.write(serialized + "\n")
                stream.flush()
        except (BrokenPipeError, OSError) as exc:
            self.transport_closed.set()
            logger.warning("MCP stdio transport closed while sending: %s", exc)

    def send_result(self, msg_id: Any, result: Dict[str, Any]) -> None:
        self.send_rpc({"jsonrpc": "2.0", "id": msg_id, "result": result})

    def send_error(self, msg_id: Any, code: int, message: str) -> None:
        """Convenience method for sending JSON-RPC errors."""
        self.send_rpc({
            "jsonrpc": "2.0",
            "id": msg_id,
            "error": {
                "code": code,
                "message": message,
            },
        })

    def read_message(self, stream: BinaryIO) -> Optional[Dict[str, Any]]:
        """
        Read one inbound JSON-RPC message from a binary stream.
        Supports Content-Length framing and newline-delimited JSON.
        """
        while True:
            line = stream.readline()
            if not line:
                return None
            if not line.strip():
                continue

            if line.lower().startswith(b"content-length:"):
                try:
                    content_length = int(line.split(b":", 1)[1].strip())
                    if content_length <= 0:
                        raise ValueError("content length must be positive")
                except ValueError:
                    logger.warning("Invalid Content-Length header: %r", line)
                    if not self._consume_framing_headers(stream):
                        return None
                    continue

                if not self._consume_framing_headers(stream):
                    return None

                payload = stream.read(content_length)
                if not payload or len(payload) != content_length:
                    return None
                msg = self._decode(payload)
            else:
                msg = self._decode(line)

            if isinstance(msg, dict):
                return msg

    def _decode(self, raw: bytes) -> Any:
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.warning("Dropping undecodable inbound message (%d bytes)", len(raw))
            return None

    def _consume_framing_headers(self, stream: BinaryIO) -> bool:
        while True:
            header_line = stream.readline()
            if not header_line:
                return False
            if header_line in (b"\r\n", b"\n"):
                return True

    def should_dispatch_in_background(self, msg: Dict[str, Any]) -> bool:
        return self.background_tool_calls and msg.get("method") == "tools/call"

    def submit_dispatch(self, msg: Dict[str, Any]) -> bool:
        """Submit a message for background dispatch if a slot is available."""
        if not self._queue_semaphore.acquire(blocking=False):
            msg_id = msg.get("id")
            if msg_id is not None:
                self.send_error(msg_id, SERVER_BUSY, "Server busy: dispatch queue is saturated.")
            else:
                logger.warning("Dropping notification while dispatch queue is saturated: %s", msg.get("method"))
            return False

        try:
            future = self.get_executor().submit(self._dispatch_guarded, msg)
        except Exception:
            self._queue_semaphore.release()
            raise

        future.add_done_callback(lambda f: self._queue_semaphore.release())
        return True

    def _dispatch_guarded(self, msg: Dict[str, Any]) -> None:
        try:
            self.dispatch_fn(msg)
        except Exception:
            logger.exception("Unexpected error during RPC dispatch")
            msg_id = msg.get("id")
            if msg_id is not None and not self.transport_closed.is_set():
                self.send_error(msg_id, INTERNAL_ERROR, "Internal error during request dispatch.")

    def serve(self, stream: Optional[BinaryIO] = None) -> None:
        """Run the read loop until EOF or the transport closes."""
        stream = stream or sys.stdin.buffer
        logger.info("Aider MCP server started")
        try:
            while True:
                msg = self.read_message(stream)
                if msg is None or self.transport_closed.is_set():
                    break
                if self.should_dispatch_in_background(msg):
                    self.submit_dispatch(msg)
                else:
                    self._dispatch_guarded(msg)
        finally:
            # Let in-flight tool calls finish writing their responses
            self.stop(wait=True)
            logger.info("Aider MCP server stopped")


def create_server(
    config: AiderMcpConfig,
    default_cwd: Optional[Path] = None,
    output: Optional[TextIO] = None,
) -> McpServer:
    """Wire reconciler, tool service and dispatcher into a ready server."""
    reconciler = ResultReconciler.from_config(config)
    service = AiderToolService(
        reconciler,
        default_cwd=default_cwd or Path.cwd(),
        models=config.models,
        summary_tag=config.extraction.summary_tag,
    )
    server = McpServer(
        max_workers=config.server.max_workers,
        queue_limit=config.server.queue_limit,
        background_tool_calls=config.server.background_tool_calls,
        output=output,
    )
    dispatcher = McpDispatcher(
        service,
        server.send_result,
        server.send_error,
        response_max_chars=config.server.response_max_chars,
    )
    server.dispatch_fn = dispatcher.dispatch
    return server
