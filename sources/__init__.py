"""External text sources: web research and page scraping."""
