"""Task MCP tools."""

from brain_mcp.tools.brain import dispatch


def _list_tasks(args: dict) -> dict:
    return dispatch("list", {"type": "task", "filter": args.get("filter", "pending")})


def _add_task(args: dict) -> dict:
    description = args.get("description", "")
    if not description:
        return {"error": "description is required", "type": "ValidationError"}
    params = {"type": "task", "description": description}
    for key in ("priority", "tags", "due"):
        if args.get(key):
            params[key] = args[key]
    return dispatch("add", params)


def _complete_task(args: dict) -> dict:
    return dispatch("task_done", {"id": args.get("id", "")})


TOOLS = [
    (
        "tasks_list",
        {
            "description": "List tasks sorted by priority (urgent first), then newest first.",
            "type": "object",
            "properties": {
                "filter": {
                    "type": "string",
                    "description": "pending (default), all, done, or a tag name",
                    "default": "pending",
                },
            },
            "required": [],
        },
        _list_tasks,
    ),
    (
        "tasks_add",
        {
            "description": "Add a pending task to the queue.",
            "type": "object",
            "properties": {
                "description": {"type": "string", "description": "What needs doing"},
                "priority": {"type": "string", "enum": ["urgent", "high", "normal", "low"], "default": "normal"},
                "tags": {"type": "string", "description": "Comma-separated tags"},
                "due": {"type": "string", "description": "Due date YYYY-MM-DD"},
            },
            "required": ["description"],
        },
        _add_task,
    ),
    (
        "tasks_done",
        {
            "description": "Mark a task done by id or unique id prefix (4+ chars).",
            "type": "object",
            "properties": {
                "id": {"type": "string", "description": "Task id or prefix"},
            },
            "required": ["id"],
        },
        _complete_task,
    ),
]
