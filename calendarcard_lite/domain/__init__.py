"""Domain layer for calendarcard_lite: event models and the processing pipeline."""
