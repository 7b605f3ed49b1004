"""FastAPI application for territory image generation."""
