"""Brain MCP tools: generic action dispatch, status, prompt rendering."""

from brain_mcp.bootstrap import get_components

_ACTIONS = ["add", "read", "update", "remove", "list", "search", "status", "task_done", "task_clear"]
_TYPES = ["behavior", "identity", "user", "learning", "preference", "context", "task", "reminder", "meta"]


def dispatch(action: str, params: dict, with_migration: bool = False) -> dict:
    """Run one brain action and shape the result for a tool response."""
    from brain.actions import handle_action

    c = get_components()
    result = handle_action(
        c["brain_path"],
        action,
        params,
        timeout=c["timeout"],
        migration_paths=c["migration_paths"] if with_migration else None,
    )
    if not result.ok:
        return {"error": result.message, "type": result.error, **result.data}
    return result.to_dict()


def _brain_action(args: dict) -> dict:
    """Generic verb + params entry point."""
    params = dict(args)
    action = params.pop("action", "")
    if not action:
        return {"error": "action is required", "type": "ValidationError"}
    return dispatch(action, params, with_migration=action == "status")


def _brain_status(args: dict) -> dict:
    return dispatch("status", {}, with_migration=True)


def _brain_prompt(args: dict) -> dict:
    """Render the budgeted memory prompt for a working directory."""
    from brain.prompt import build_prompt, injected_ids
    from brain.store import load_brain

    c = get_components()
    brain = load_brain(c["brain_path"])
    cwd = args.get("cwd", "")
    budget = int(args.get("budget") or c["config_model"].prompt.budget)
    return {
        "prompt": build_prompt(brain, cwd, budget),
        "injected_ids": sorted(injected_ids(brain, cwd, budget)),
    }


TOOLS = [
    (
        "brain_action",
        {
            "description": "Read or write the agent's persistent memory. Actions: add (type + fields), read/update/remove (id), list (optional type, filter for tasks), search (query), status, task_done (id), task_clear.",
            "type": "object",
            "properties": {
                "action": {"type": "string", "enum": _ACTIONS, "description": "Verb to run"},
                "type": {"type": "string", "enum": _TYPES, "description": "Entry type for add/list"},
                "id": {"type": "string", "description": "Entry id (tasks accept a unique prefix of 4+ chars)"},
                "text": {"type": "string", "description": "Text for behavior/learning/preference"},
                "category": {"type": "string", "description": "Behavior category (do, dont, value) or preference category"},
                "key": {"type": "string", "description": "Key for identity/user/meta"},
                "value": {"type": "string", "description": "Value for identity/user/meta"},
                "description": {"type": "string", "description": "Task or reminder description"},
                "priority": {"type": "string", "enum": ["urgent", "high", "normal", "low"]},
                "tags": {"type": "string", "description": "Comma-separated tags"},
                "due": {"type": "string", "description": "Due date YYYY-MM-DD"},
                "status": {"type": "string", "enum": ["pending", "done"]},
                "query": {"type": "string", "description": "Search text"},
                "filter": {"type": "string", "description": "Task filter: pending, all, done, or a tag"},
                "reason": {"type": "string", "description": "Reason recorded when removing"},
            },
            "required": ["action"],
        },
        _brain_action,
    ),
    (
        "brain_status",
        {
            "description": "Entry counts per category, log health and legacy migration state.",
            "type": "object",
            "properties": {},
            "required": [],
        },
        _brain_status,
    ),
    (
        "brain_prompt",
        {
            "description": "Render the memory section of the system prompt within a token budget.",
            "type": "object",
            "properties": {
                "cwd": {"type": "string", "description": "Working directory for project context and learning scoring"},
                "budget": {"type": "integer", "description": "Approximate token budget", "default": 2000},
            },
            "required": [],
        },
        _brain_prompt,
    ),
]
