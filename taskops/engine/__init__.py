"""TaskOps Engine — config, errors, logging, cache, registry, executor, runtime."""
