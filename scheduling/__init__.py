"""Refresh scheduling: seasonal calendar, staleness scoring, selection and state persistence."""
