"""Static protocol defaults for the MCP test client."""

DEFAULT_CLIENT_NAME = "devtools-mcp-test-client"
DEFAULT_CLIENT_VERSION = "0.1.0"

LATEST_PROTOCOL_VERSION = "2025-06-18"
SUPPORTED_PROTOCOL_VERSIONS = [
    LATEST_PROTOCOL_VERSION,
    "2025-03-26",
    "2024-11-05",
]

# Feature groups advertised during initialize
CLIENT_CAPABILITIES = {
    "prompts": {},
    "resources": {},
    "tools": {
        "list": {},
        "call": {},
    },
}

DEFAULT_WORKER_COMMAND = "node"
DEFAULT_WORKER_ENTRY_POINT = "bin/cli.mjs"

PORT_FLAG = "--port"
DYNAMIC_PORT = "0"

# JSON-RPC 2.0 reserved error codes
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
