"""
State file persistence — atomic read/write for NodeState.

State is stored as JSON in .state/jenkins.json. Writes are atomic
(write to temp file, then rename) so an interrupted run never leaves
a truncated file behind.
"""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path

from jenkins_provision.core.models.state import NodeState

logger = logging.getLogger(__name__)

DEFAULT_STATE_DIR = ".state"
DEFAULT_STATE_FILE = "jenkins.json"


def default_state_dir(config_path: Path | None) -> Path:
    """State directory next to the config file, or in the cwd."""
    base = config_path.parent.resolve() if config_path else Path.cwd()
    return base / DEFAULT_STATE_DIR


def load_state(path: Path) -> NodeState:
    """Load node state from a JSON file.

    Returns a fresh NodeState if the file is missing or unreadable.
    """
    if not path.is_file():
        logger.info("No state file at %s — starting fresh", path)
        return NodeState()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        state = NodeState.model_validate(data)
        logger.debug("Loaded state from %s (updated_at=%s)", path, state.updated_at)
        return state
    except json.JSONDecodeError as e:
        logger.warning("Corrupt state file %s: %s — starting fresh", path, e)
        return NodeState()
    except (OSError, ValueError) as e:
        logger.warning("Cannot load state from %s: %s — starting fresh", path, e)
        return NodeState()


def save_state(state: NodeState, path: Path) -> None:
    """Save node state to a JSON file (atomic write)."""
    state.touch()
    path.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(state.model_dump(mode="json"), indent=2, ensure_ascii=False) + "\n"

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".state_", suffix=".tmp")
    tmp = Path(tmp_name)
    try:
        with open(fd, "w", encoding="utf-8") as f:
            f.write(content)
        tmp.replace(path)
        logger.debug("State saved to %s", path)
    except Exception as e:
        tmp.unlink(missing_ok=True)
        logger.error("Failed to save state to %s: %s", path, e)
        raise
