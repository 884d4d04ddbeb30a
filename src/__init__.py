"""blogpipe - researched, SEO-ready physiotherapy blog posts published to Wix."""

__version__ = "0.1.0"
