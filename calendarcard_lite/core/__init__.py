"""Core helpers for calendarcard_lite: time values, clocks and the HTTP client."""
