"""Lazy component initialization for MCP server."""

import structlog

logger = structlog.get_logger()

_components = None


def get_components() -> dict:
    """Lazy singleton with the same keys as cli.utils.get_components().

    Config errors raise ValueError here instead of exiting the process, so the
    server can report them as a tool error.
    """
    global _components
    if _components is None:
        from cli.config import get_migration_paths, get_paths, load_config_model

        config_model = load_config_model()
        paths = get_paths(config_model)
        _components = {
            "config_model": config_model,
            "paths": paths,
            "brain_path": paths["brain_path"],
            "migration_paths": get_migration_paths(config_model),
            "timeout": config_model.lock.timeout,
        }
        logger.info("mcp_bootstrap_init", brain_path=str(paths["brain_path"]))
    return _components
