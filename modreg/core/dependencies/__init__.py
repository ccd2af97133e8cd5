from modreg.core.dependencies.graph import DependencyGraphChecker

__all__ = ["DependencyGraphChecker"]
