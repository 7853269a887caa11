"""Knowledge base services."""

from chatly.services.knowledge.crawler import KnowledgeCrawler, extract_page_text

__all__ = ["KnowledgeCrawler", "extract_page_text"]
