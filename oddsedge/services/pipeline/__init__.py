"""Collection pipeline: worker pool, collectors, orchestrator and run ledger."""
