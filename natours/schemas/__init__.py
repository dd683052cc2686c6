"""Request and response models for the tour, review and user resources."""
