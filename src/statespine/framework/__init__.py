"""statespine framework layer -- cross-cutting services (logging)."""
