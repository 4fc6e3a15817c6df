"""
Audio Studio - prompt-driven audio generation with a local gallery.
"""

__version__ = "1.0.0"


# Lazy imports so that importing the package does not pull in the web stack
def __getattr__(name):
    """Lazy import for the main entry points."""
    if name == "create_app":
        from .api.app import create_app

        return create_app
    elif name == "GenerationOrchestrator":
        from .core.orchestrator import GenerationOrchestrator

        return GenerationOrchestrator
    elif name == "ArtifactStore":
        from .services.artifacts import ArtifactStore

        return ArtifactStore
    else:
        raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


__all__ = ["create_app", "GenerationOrchestrator", "ArtifactStore"]
