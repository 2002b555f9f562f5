import copy
import logging
import shutil
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, List

from pydantic import ValidationError

from aider_mcp.aider.service import AiderArchitectArgs, AiderExecuteArgs, AiderToolService
from aider_mcp.version import __version__

from .definitions import (
    DESTRUCTIVE_TOOLS,
    PROMPTS,
    RESOURCE_CONTENTS,
    RESOURCES,
    TOOLS_SCHEMAS,
    render_assistance_prompt,
)
from .protocol import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    JSON_SCHEMA_2020_12,
    METHOD_NOT_FOUND,
    SERVER_NAME,
    SUPPORTED_PROTOCOL_VERSIONS,
    negotiate_protocol_version,
)
from .utils import build_initialize_instructions, truncate_tool_text

logger = logging.getLogger("AiderMCP.mcp.handlers")

SendResultFn = Callable[[Any, Dict[str, Any]], None]
SendErrorFn = Callable[[Any, int, str], None]

# Methods that may be called before the session is initialized
_PRE_INIT_METHODS = {"initialize", "notifications/initialized", "ping"}


def _new_session_state() -> Dict[str, Any]:
    return {
        "negotiated": False,
        "initialized": False,
        "protocol_version": SUPPORTED_PROTOCOL_VERSIONS[0],
        "client_capabilities": {},
        "client_info": {},
    }


class McpDispatcher:
    """
    Routes parsed JSON-RPC messages to handlers.

    Conformance notes:
    - Unknown request methods (with id) return -32601.
    - Unknown notifications (no id) are ignored.
    - notifications/initialized is only accepted after successful initialize.
    - Everything except initialize/ping requires an initialized session.
    """

    def __init__(
        self,
        service: AiderToolService,
        send_result_fn: SendResultFn,
        send_error_fn: SendErrorFn,
        response_max_chars: int = 32768,
    ) -> None:
        self.service = service
        self.send_result = send_result_fn
        self.send_error = send_error_fn
        self.response_max_chars = response_max_chars
        self.session = _new_session_state()
        self._session_lock = threading.Lock()
        self._routes: Dict[str, Callable[[Any, Dict[str, Any]], None]] = {
            "initialize": self.handle_initialize,
            "ping": self.handle_ping,
            "tools/list": self.handle_list_tools,
            "tools/call": self.handle_call_tool,
            "resources/list": self.handle_list_resources,
            "resources/read": self.handle_read_resource,
            "prompts/list": self.handle_list_prompts,
            "prompts/get": self.handle_get_prompt,
        }

    def dispatch(self, msg: Dict[str, Any]) -> None:
        msg_id = msg.get("id")
        method = msg.get("method")
        params = msg.get("params")
        if params is None:
            params = {}

        if not isinstance(method, str):
            if msg_id is not None:
                self.send_error(msg_id, INVALID_REQUEST, "Invalid Request: missing method")
            return

        if method == "notifications/initialized":
            with self._session_lock:
                if self.session["negotiated"]:
                    self.session["initialized"] = True
                    logger.info("Client initialized connection")
                else:
                    logger.warning("Ignored notifications/initialized before successful initialize")
            return

        handler = self._routes.get(method)
        if handler is None:
            if msg_id is not None:
                self.send_error(msg_id, METHOD_NOT_FOUND, f"Method not found: {method}")
            else:
                logger.debug("Ignoring unknown notification method: %s", method)
            return

        if msg_id is None:
            logger.debug("Ignoring %s notification without id", method)
            return

        if not isinstance(params, dict):
            self.send_error(msg_id, INVALID_PARAMS, f"Invalid params: {method} params must be an object")
            return

        if method not in _PRE_INIT_METHODS and not self.session["initialized"]:
            self.send_error(
                msg_id,
                INVALID_REQUEST,
                "Server not initialized. Send initialize then notifications/initialized.",
            )
            return

        handler(msg_id, params)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def handle_initialize(self, msg_id: Any, params: Dict[str, Any]) -> None:
        """Handle protocol negotiation and server initialization."""
        requested_version = params.get("protocolVersion")
        negotiated_version = negotiate_protocol_version(requested_version)
        if not negotiated_version:
            self.send_error(msg_id, INVALID_PARAMS, f"Unsupported protocol version {requested_version}")
            return

        with self._session_lock:
            self.session["negotiated"] = True
            self.session["protocol_version"] = negotiated_version
            self.session["client_capabilities"] = params.get("capabilities", {})
            self.session["client_info"] = params.get("clientInfo", {})

        self.send_result(msg_id, {
            "protocolVersion": negotiated_version,
            "capabilities": {
                "tools": {"listChanged": False},
                "resources": {"listChanged": False, "subscribe": False},
                "prompts": {"listChanged": False},
            },
            "serverInfo": {"name": SERVER_NAME, "version": __version__},
            "instructions": build_initialize_instructions(self.startup_warnings()),
        })

    def startup_warnings(self) -> List[str]:
        warnings = []
        executable = self.service.reconciler.executable
        if not Path(executable).is_file() and shutil.which(executable) is None:
            warnings.append(f"Aider executable '{executable}' was not found; tool calls will fail")
        return warnings

    def handle_ping(self, msg_id: Any, params: Dict[str, Any]) -> None:
        self.send_result(msg_id, {})

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    def handle_list_tools(self, msg_id: Any, params: Dict[str, Any]) -> None:
        """List available tools with schemas and hints."""
        tools_list = []
        for schema_def in TOOLS_SCHEMAS:
            name = schema_def["name"]
            input_schema = copy.deepcopy(schema_def["inputSchema"])
            input_schema.setdefault("$schema", JSON_SCHEMA_2020_12)
            tools_list.append({
                "name": name,
                "description": schema_def["description"],
                "inputSchema": input_schema,
                "annotations": {
                    "readOnlyHint": False,
                    "destructiveHint": name in DESTRUCTIVE_TOOLS,
                    "idempotentHint": False,
                    "openWorldHint": True,
                },
            })
        self.send_result(msg_id, {"tools": tools_list})

    def handle_call_tool(self, msg_id: Any, params: Dict[str, Any]) -> None:
        """Execute a single tool call."""
        name = params.get("name")
        if not isinstance(name, str) or not name:
            self.send_error(msg_id, INVALID_PARAMS, "Invalid params: tools/call requires non-empty string name")
            return

        arguments = params.get("arguments") or {}
        if not isinstance(arguments, dict):
            self.send_error(msg_id, INVALID_PARAMS, "Invalid params: arguments must be an object")
            return

        started = time.monotonic()
        try:
            if name == "aider_execute":
                result = self.service.execute(AiderExecuteArgs.model_validate(arguments))
            elif name == "aider_architect":
                result = self.service.architect(AiderArchitectArgs.model_validate(arguments))
            else:
                self.send_error(msg_id, INVALID_PARAMS, f"Unknown tool: {name}")
                return
        except ValidationError as exc:
            self.send_error(msg_id, INVALID_PARAMS, f"Invalid arguments for {name}: {exc.errors()[0]['msg']}")
            return
        except Exception as e:
            logger.exception("Tool execution failed: %s", name)
            self.send_error(msg_id, INTERNAL_ERROR, str(e))
            return
        finally:
            logger.info(
                "Tool call telemetry: name=%s id=%r elapsed_ms=%.1f",
                name,
                msg_id,
                (time.monotonic() - started) * 1000.0,
            )

        for block in result.get("content", []):
            if block.get("type") == "text":
                block["text"] = truncate_tool_text(block["text"], name, self.response_max_chars)
        self.send_result(msg_id, result)

    # ------------------------------------------------------------------
    # Resources & prompts
    # ------------------------------------------------------------------

    def handle_list_resources(self, msg_id: Any, params: Dict[str, Any]) -> None:
        self.send_result(msg_id, {"resources": copy.deepcopy(RESOURCES)})

    def handle_read_resource(self, msg_id: Any, params: Dict[str, Any]) -> None:
        uri = params.get("uri")
        text = RESOURCE_CONTENTS.get(uri) if isinstance(uri, str) else None
        if text is None:
            self.send_error(msg_id, INVALID_PARAMS, f"Unknown resource: {uri}")
            return
        self.send_result(msg_id, {
            "contents": [{"uri": uri, "mimeType": "text/plain", "text": text}],
        })

    def handle_list_prompts(self, msg_id: Any, params: Dict[str, Any]) -> None:
        self.send_result(msg_id, {"prompts": copy.deepcopy(PROMPTS)})

    def handle_get_prompt(self, msg_id: Any, params: Dict[str, Any]) -> None:
        name = params.get("name")
        if name != "aider_assistance":
            self.send_error(msg_id, INVALID_PARAMS, f"Unknown prompt: {name}")
            return
        arguments = params.get("arguments") or {}
        task = arguments.get("task") if isinstance(arguments, dict) else None
        if not isinstance(task, str) or not task:
            self.send_error(msg_id, INVALID_PARAMS, "Invalid params: prompt argument 'task' is required")
            return
        context = arguments.get("context") or ""
        self.send_result(msg_id, {
            "description": "Get coding assistance using Aider CLI",
            "messages": [{
                "role": "user",
                "content": {"type": "text", "text": render_assistance_prompt(task, str(context))},
            }],
        })
