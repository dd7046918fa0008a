"""Services shared by the pipeline and analysis: odds feed client, circuit breaker, bookmaker registry."""
