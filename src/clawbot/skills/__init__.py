"""
Skills are named bundles of tools the model may invoke.

Adding a capability means adding one ``Skill`` to the registry; neither the
engine nor the tool executor needs to change.
"""

from typing import List

from .base import (
    DuplicateToolError,
    NoArgs,
    Skill,
    SkillRegistry,
    ToolContext,
    ToolSpec,
)


def default_skills() -> List[Skill]:
    """The built-in skills, in registration order."""
    from .browser import browser_skill
    from .github import github_skill
    from .job_search import job_search_skill
    from .self_improvement import self_improvement_skill
    from .system import system_skill

    return [
        system_skill,
        github_skill,
        browser_skill,
        job_search_skill,
        self_improvement_skill,
    ]
