"""taskdesk - team task tracker with recurring occurrences and overdue alerts."""
