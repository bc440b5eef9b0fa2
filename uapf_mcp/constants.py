"""Constants and defaults for the UAPF MCP gateway."""

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 7900
DEFAULT_PATH = "/mcp"
DEFAULT_CORS_ORIGIN = "*"
DEFAULT_SERVER_NAME = "uapf-mcp"
DEFAULT_ENGINE_URL = "http://localhost:3001"
DEFAULT_ENGINE_TIMEOUT_MS = 15000
DEFAULT_VERIFIER_TIMEOUT_S = 5.0

# Canonical tool prefix; a different configured prefix adds aliases.
CANONICAL_TOOL_PREFIX = "uapf"

CANONICAL_TOOLS: tuple[str, ...] = (
    "uapf.describe",
    "uapf.list",
    "uapf.run_process",
    "uapf.evaluate_decision",
    "uapf.resolve_resources",
    "uapf.get_artifact",
    "uapf.validate",
)

ARTIFACT_KINDS: tuple[str, ...] = ("manifest", "bpmn", "dmn", "cmmn", "docs", "tests")
DEFAULT_ARTIFACT_MEDIA_TYPE = "application/xml"
JSON_MEDIA_TYPE = "application/json"

RESOURCE_SCHEME = "uapf"
