"""Workflow step agents."""

from listify.ai.agents.base import BaseAgent, StepContext
from listify.ai.agents.formatter import PdfFormatter
from listify.ai.agents.listing import EtsyListingGenerator
from listify.ai.agents.optimizer import PatternOptimizer

__all__ = ["BaseAgent", "EtsyListingGenerator", "PatternOptimizer", "PdfFormatter", "StepContext"]
