"""Request and response models for the web app."""
