"""
Analyzers - the area analysis → insight → action pipeline.
"""

from .area import AreaAnalyzer
from .insights import InsightGenerator
from .planner import ActionPlanner

__all__ = ["AreaAnalyzer", "InsightGenerator", "ActionPlanner"]
