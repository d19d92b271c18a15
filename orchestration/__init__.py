"""Pipeline orchestration: single-retailer runs, batches and scheduled refreshes."""
