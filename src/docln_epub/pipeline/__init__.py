"""End-to-end crawl pipeline."""

from .orchestrator import CrawlOrchestrator

__all__ = ["CrawlOrchestrator"]
