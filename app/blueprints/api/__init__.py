"""JSON API blueprints for the pH dashboard."""
