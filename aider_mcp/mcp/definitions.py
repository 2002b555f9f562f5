from typing import List, Dict, Any

from aider_mcp.core.config import DEFAULT_ARCHITECT_MODEL, DEFAULT_MODEL

_MODEL_CHOICES = (
    "'deepseek/deepseek-reasoner' (excellent reasoning and cost-effective), "
    "'gemini/gemini-2.5-pro-preview-05-06' (high performance and excellent balance), "
    "'deepseek' (fast and economical)"
)

_WORKING_DIR_SCHEMA = {
    "type": "string",
    "description": (
        "The absolute path to the working directory where Aider CLI should execute. "
        "If not provided, uses the directory the server was started in. This determines "
        "the context and scope of file operations."
    ),
}

_FILES_SCHEMA = {
    "type": "array",
    "items": {"type": "string"},
    "description": "Specific files required for the task.",
}

_RESTORE_HISTORY_SCHEMA = {
    "type": "boolean",
    "default": False,
    "description": (
        "Enable Aider to remember past conversations from chat history. Useful when the "
        "current task needs to refer to previous context or build upon earlier work."
    ),
}

TOOLS_SCHEMAS: List[Dict[str, Any]] = [
    {
        "name": "aider_execute",
        "description": "Execute Aider CLI commands with natural language prompts. Returns only the summary of what was accomplished.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "prompt": {
                    "type": "string",
                    "description": (
                        "The natural language prompt or instruction to send to Aider CLI. This can be "
                        "any programming task, question, or request such as 'create a Python script that "
                        "reads CSV files', 'fix the bug in main.js', 'explain this function', etc."
                    ),
                },
                "workingDir": _WORKING_DIR_SCHEMA,
                "files": _FILES_SCHEMA,
                "model": {
                    "type": "string",
                    "default": DEFAULT_MODEL,
                    "description": f"AI model to use with Aider. Available models: {_MODEL_CHOICES}.",
                },
                "restoreChatHistory": _RESTORE_HISTORY_SCHEMA,
            },
            "required": ["prompt"],
        },
    },
    {
        "name": "aider_architect",
        "description": "Execute Aider CLI in architect mode for complex coding tasks. Returns only the summary of what was accomplished.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "prompt": {
                    "type": "string",
                    "description": (
                        "The complex coding task or architectural challenge to solve. Architect mode "
                        "excels at breaking down large problems, planning implementations, and "
                        "coordinating multiple file changes."
                    ),
                },
                "workingDir": _WORKING_DIR_SCHEMA,
                "files": _FILES_SCHEMA,
                "architectModel": {
                    "type": "string",
                    "default": DEFAULT_ARCHITECT_MODEL,
                    "description": (
                        f"Architect model for high-level planning. Available models: {_MODEL_CHOICES}. "
                        "The architect describes solutions without editing files."
                    ),
                },
                "editorModel": {
                    "type": "string",
                    "description": (
                        "Editor model for implementation. If not specified, Aider chooses a suitable "
                        "default based on the architect model."
                    ),
                },
                "restoreChatHistory": _RESTORE_HISTORY_SCHEMA,
            },
            "required": ["prompt"],
        },
    },
]

# Both tools edit files and may commit
DESTRUCTIVE_TOOLS = {"aider_execute", "aider_architect"}

HELP_TEXT = """Aider CLI Help and Usage Information

Usage:
  $ aider [options] [files...]
  $ aider --help

Key Options:
  --yes                Accept all suggestions automatically
  --auto-commits       Automatically commit changes
  --model <model>      AI model to use (sonnet, gpt-4o, deepseek, etc.)
  --architect          Use architect/editor mode
  --no-pretty          Disable pretty output
  --message <msg>      Single message mode
  --help               Show usage information

For complete documentation, visit: https://aider.chat/docs/"""

RESOURCES: List[Dict[str, Any]] = [
    {
        "uri": "aider://help",
        "name": "aider_help",
        "description": "Aider CLI help and usage information",
        "mimeType": "text/plain",
    },
]

RESOURCE_CONTENTS: Dict[str, str] = {
    "aider://help": HELP_TEXT,
}

PROMPTS: List[Dict[str, Any]] = [
    {
        "name": "aider_assistance",
        "description": "Get coding assistance using Aider CLI",
        "arguments": [
            {"name": "task", "description": "The coding task or problem to solve", "required": True},
            {"name": "context", "description": "Additional context or requirements", "required": False},
        ],
    },
]


def render_assistance_prompt(task: str, context: str = "") -> str:
    text = f"Help me with this coding task: {task}"
    if context:
        text += f"\n\nAdditional context: {context}"
    return text
