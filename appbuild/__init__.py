"""appbuild - Compile orchestration for multi-application projects.

This package orders interdependent applications, stages their source trees
into isolated output workspaces, dispatches each to a compiler pipeline or a
custom project builder, and verifies the declared artifacts.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
