"""Controller runtime: work queues, watches and workers."""
