"""
Builder/validator pairing for agent teams.

Which validator reviews a builder's work is resolved from three layers,
highest priority first:
    1. team template: teammates[].paired_validator for the builder
    2. project metadata: validation_pairs[builder]
    3. BUILT_IN_PAIRS

Validator verdicts are read back from the message bus: the most recent
matching "validation" message wins.
"""

import logging
from pathlib import Path
from typing import Optional

from agileflow.lib.config import (
    TeamTemplateLike,
    coerce_team_template,
    get_validation_pairs,
    load_metadata,
    requires_validator_approval,
)
from agileflow.lib.paths import get_bus_log_path
from agileflow.teams.bus import iter_recent_messages

logger = logging.getLogger(__name__)

BUILT_IN_PAIRS = {
    "agileflow-api": "agileflow-api-validator",
    "agileflow-ui": "agileflow-ui-validator",
    "agileflow-database": "agileflow-schema-validator",
}

APPROVAL_SCAN_LIMIT = 200

VERDICT_APPROVED = "approved"
VERDICT_REJECTED = "rejected"


def get_validator(
    builder: str,
    team_template: TeamTemplateLike = None,
    root: Optional[Path] = None,
) -> Optional[str]:
    """Validator paired with ``builder``, or None if nobody validates it."""
    template = coerce_team_template(team_template)
    if template is not None:
        teammate = template.teammate_for(builder)
        if teammate is not None and teammate.paired_validator:
            return teammate.paired_validator

    if root is not None:
        override = get_validation_pairs(load_metadata(root)).get(builder)
        if override:
            return override

    return BUILT_IN_PAIRS.get(builder)


def requires_validation(
    builder: str,
    team_template: TeamTemplateLike = None,
    root: Optional[Path] = None,
) -> bool:
    """True if task completion needs a validator's approval for this builder.

    The require_validator_approval flag comes from metadata when it sets one,
    else from the team template. A builder with no validator never requires
    validation.
    """
    template = coerce_team_template(team_template)

    required = None
    if root is not None:
        required = requires_validator_approval(load_metadata(root))
    if required is None and template is not None:
        required = template.requires_validator_approval()
    if not required:
        return False

    return get_validator(builder, team_template=template, root=root) is not None


def get_verdict(
    task_id: str,
    validator: str,
    root: Optional[Path],
    scan_limit: int = APPROVAL_SCAN_LIMIT,
) -> Optional[str]:
    """Most recent verdict from ``validator`` on ``task_id`` within the scan window."""
    if root is None:
        return None

    log_path = get_bus_log_path(root)
    try:
        for message in iter_recent_messages(log_path, scan_limit):
            if (
                message.get("type") == "validation"
                and message.get("from") == validator
                and message.get("task_id") == task_id
                and message.get("status") in (VERDICT_APPROVED, VERDICT_REJECTED)
            ):
                return message["status"]
    except OSError as e:
        logger.warning(f"Could not read bus log {log_path}: {e}")
    return None


def is_validator_approved(
    task_id: str,
    validator: str,
    root: Optional[Path] = None,
    scan_limit: int = APPROVAL_SCAN_LIMIT,
) -> bool:
    """True if the latest verdict from ``validator`` on ``task_id`` is an approval."""
    return get_verdict(task_id, validator, root, scan_limit) == VERDICT_APPROVED


def get_all_pairs(team_template: TeamTemplateLike = None, root: Optional[Path] = None) -> dict[str, str]:
    """Every known builder -> validator pair, later layers overriding earlier ones."""
    pairs = dict(BUILT_IN_PAIRS)

    if root is not None:
        pairs.update(get_validation_pairs(load_metadata(root)))

    template = coerce_team_template(team_template)
    if template is not None:
        for teammate in template.teammates:
            if teammate.paired_validator:
                pairs[teammate.agent] = teammate.paired_validator

    return pairs
