from .resolver import EXPLICIT, IMPLICIT, SHELL_ORDER, DependencyResolver, ExecutionPlan, resolve

__all__ = ["EXPLICIT", "IMPLICIT", "SHELL_ORDER", "DependencyResolver", "ExecutionPlan", "resolve"]
