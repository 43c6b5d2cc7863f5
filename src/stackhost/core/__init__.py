"""stackhost.core — Application model, resources and manifest."""
