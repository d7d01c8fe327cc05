"""
Tool protocol for the memory service: JSON-RPC 2.0 with MCP-style
`initialize`, `tools/list` and `tools/call` methods.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

from pydantic import ValidationError

from cmem.core.memory import DEFAULT_USER_ID
from cmem.core.service import MemoryService
from cmem.metrics import LAT, mark

logger = logging.getLogger(__name__)

SERVER_NAME = "CombinedMemory-v2"
SERVER_VERSION = "2.0.0"
PROTOCOL_VERSION = "2024-11-05"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

TOOLS = [
    {
        "name": "add-memory",
        "title": "Add Memory",
        "description": (
            "Add a new memory. Call this whenever the user shares something about "
            "themselves, their preferences, or anything useful for future "
            "conversations, or asks you to remember something."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "content": {"type": "string"},
                "userId": {"type": "string", "default": DEFAULT_USER_ID},
            },
            "required": ["content"],
        },
    },
    {
        "name": "search-memories",
        "title": "Search Memories",
        "description": "Search through stored memories. Call this whenever the user asks anything.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "query": {"type": "string"},
                "userId": {"type": "string", "default": DEFAULT_USER_ID},
            },
            "required": ["query"],
        },
    },
]
TOOL_NAMES = frozenset(t["name"] for t in TOOLS)


class InvalidParams(Exception):
    def __init__(self, message: str, data: Any = None) -> None:
        super().__init__(message)
        self.data = data


def jsonrpc_result(req_id, result):
    return {"jsonrpc": "2.0", "id": req_id, "result": result}


def jsonrpc_error(req_id, code, message, data=None):
    err: Dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        err["data"] = data
    return {"jsonrpc": "2.0", "id": req_id, "error": err}


def text_content(text: str, is_error: bool = False) -> Dict[str, Any]:
    out: Dict[str, Any] = {"content": [{"type": "text", "text": text}]}
    if is_error:
        out["isError"] = True
    return out


def call_tool(service: MemoryService, name: str, args: Dict[str, Any]) -> Dict[str, Any]:
    if name not in TOOL_NAMES:
        return text_content(f"Unknown tool: {name}", is_error=True)

    mark(name)
    t0 = time.perf_counter()
    try:
        if name == "add-memory":
            text = service.add_memory_text(args.get("content"), args.get("userId"))
        else:
            text = service.search_memories_text(args.get("query"), args.get("userId"))
    except ValidationError as e:
        raise InvalidParams(
            f"Invalid arguments for tool {name}",
            e.errors(include_url=False, include_context=False, include_input=False),
        ) from e
    finally:
        LAT.labels(operation=name).observe((time.perf_counter() - t0) * 1000.0)
    return text_content(text)


def handle_request(service: MemoryService, req: Any) -> Optional[Dict[str, Any]]:
    """Dispatch one JSON-RPC message. Notifications return None."""
    if not isinstance(req, dict) or req.get("jsonrpc") != "2.0" or not isinstance(req.get("method"), str):
        req_id = req.get("id") if isinstance(req, dict) else None
        return jsonrpc_error(req_id, INVALID_REQUEST, "Invalid Request")

    req_id = req.get("id")
    method = req["method"]

    if "id" not in req:
        return None

    if method == "initialize":
        return jsonrpc_result(req_id, {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {"tools": {}},
            "serverInfo": {"name": SERVER_NAME, "version": SERVER_VERSION},
        })

    if method == "ping":
        return jsonrpc_result(req_id, {})

    if method == "tools/list":
        return jsonrpc_result(req_id, {"tools": TOOLS})

    if method == "tools/call":
        params = req.get("params") or {}
        if not isinstance(params, dict):
            return jsonrpc_error(req_id, INVALID_PARAMS, "params must be an object")
        args = params.get("arguments") or {}
        if not isinstance(args, dict):
            return jsonrpc_error(req_id, INVALID_PARAMS, "arguments must be an object")
        try:
            return jsonrpc_result(req_id, call_tool(service, str(params.get("name", "")), args))
        except InvalidParams as e:
            return jsonrpc_error(req_id, INVALID_PARAMS, str(e), e.data)
        except Exception as e:
            logger.exception("tool call %r failed", params.get("name"))
            return jsonrpc_error(req_id, INTERNAL_ERROR, "Internal error", str(e))

    return jsonrpc_error(req_id, METHOD_NOT_FOUND, f"Method not found: {method}")
