"""Forge: staged product-generation pipeline backed by Gemini."""
