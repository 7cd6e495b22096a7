"""Project version constants.

Used in logs and in the CLI ``--version`` output so that a saved file or a
bug report can be traced back to a specific engine version.
"""

ENGINE_NAME: str = "parquet_studio"
ENGINE_VERSION: str = "0.1.0"
