"""Admin (authenticated) routes for postdesk."""
