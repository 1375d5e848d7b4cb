"""Task dispatch and night-shift orchestration.

The runner pulls pending tasks from the dashboard queue, dispatches each one
to the handler registered for its type under a bounded worker pool, writes
status transitions back to the queue and publishes a run summary. Handler
failures, unknown task types and timeouts are always turned into failed
results so one bad task never stops the rest of the run. Nothing is retried:
a failed task stays failed until a producer enqueues it again.
"""
