"""Application services built on top of the pipeline (session, recent files)."""
