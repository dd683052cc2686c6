"""Small pure helpers shared by services: slugs and spherical geometry."""
