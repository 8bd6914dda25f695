"""Build orchestration module.

This module handles:
- Staging application source trees into output workspaces
- The default compiler pipeline and custom project builders
- Pre/post hooks around each build stage
- Application metadata and artifact verification
- Code path computation
"""

from appbuild.builds.orchestrator import (
    BuildContext,
    CompileResult,
    Orchestrator,
    compile_project,
)

__all__ = ["BuildContext", "CompileResult", "Orchestrator", "compile_project"]
