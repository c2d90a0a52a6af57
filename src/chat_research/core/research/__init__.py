"""Deep research: models, search providers, document persistence and the pipeline workflow."""
