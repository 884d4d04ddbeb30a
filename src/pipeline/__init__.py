"""Pipeline modules: orchestration layer for the blogpipe content pipeline.

  blog: topic -> research -> outline -> sections -> assembled post -> Wix

Pipeline modules import domain logic via public APIs:
  - ``from blogpipe.blog import ...`` (not ``blogpipe.blog.assembler``)
  - ``from blogpipe.shared.* import ...`` for errors, images, LLM calls.
  - Sub-package ``__init__`` imports (``blogpipe.blog.publishers``) are fine.
"""
