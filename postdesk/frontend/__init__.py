"""Public routes for postdesk."""
