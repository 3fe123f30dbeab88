"""Application services coordinating the database, the pipeline and the task runner."""
