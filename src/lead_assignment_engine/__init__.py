"""Lead Assignment Engine - branch-scoped routing of sales leads to employees."""

__version__ = "1.0.0"
